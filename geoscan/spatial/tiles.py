"""Expand cluster polygons into H3 tiles used as inference join keys."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from functools import partial
from typing import Any, Iterable, List, Optional, Tuple

import pandas as pd

from ..errors import AmbiguousTileError
from .h3_utils import SpatialIndex, format_cell, resolve_index


logger = logging.getLogger(__name__)

CELL_COL = "h3"
DILATED_COL = "dilated"

RESERVED_COLUMNS = (CELL_COL, DILATED_COL)

TIE_BREAK_POLICIES = ("first", "reject", "all")


def _cluster_tiles(cluster, precision: int, layers: int, index: SpatialIndex) -> List[Tuple[Any, str, bool]]:
    # Canonical ids so tie-breaks and joins compare the same keys
    exact = {format_cell(cell) for cell in index.poly_fill(cluster.points, precision, 0)}
    full = exact
    if layers > 0:
        full = {format_cell(cell) for cell in index.poly_fill(cluster.points, precision, layers)} | exact

    rows = [(cluster.id, cell, False) for cell in sorted(exact)]
    rows.extend((cluster.id, cell, True) for cell in sorted(full - exact))
    return rows


def expand_tiles(
    clusters: Iterable,
    precision: int,
    layers: int = 0,
    *,
    index: Optional[SpatialIndex] = None,
    executor: Optional[Executor] = None,
    prediction_col: str = "cluster",
) -> pd.DataFrame:
    """Return one ``(cluster id, cell, dilated)`` row per tile of every cluster.

    ``layers`` rings of neighbouring cells are added around each polygon;
    those extra cells carry ``dilated=True``. Cell ids are upper-cased. A cell
    may appear under several clusters, see :func:`resolve_tiles`. When
    ``executor`` is given, clusters are expanded in parallel; row order still
    follows cluster order.
    """

    if layers < 0:
        raise ValueError(f"layers must be >= 0, got {layers}")
    if prediction_col in RESERVED_COLUMNS:
        raise ValueError(f"prediction_col '{prediction_col}' is reserved for tile tables")

    index = resolve_index(index)
    clusters = list(clusters)
    expand = partial(_cluster_tiles, precision=precision, layers=layers, index=index)

    if executor is not None and len(clusters) > 1:
        per_cluster = list(executor.map(expand, clusters))
    else:
        per_cluster = [expand(cluster) for cluster in clusters]

    records = [row for rows in per_cluster for row in rows]
    tiles = pd.DataFrame.from_records(records, columns=[prediction_col, CELL_COL, DILATED_COL])
    tiles[DILATED_COL] = tiles[DILATED_COL].astype(bool)

    logger.debug(
        "Expanded %d clusters into %d tiles at resolution %d (layers=%d)",
        len(clusters),
        len(tiles),
        precision,
        layers,
    )
    tiles.attrs["h3_res"] = precision
    tiles.attrs["layers"] = layers
    return tiles


def ambiguous_cells(tiles: pd.DataFrame) -> List[str]:
    """Cells that appear under more than one cluster, sorted."""

    if tiles.empty:
        return []
    dupes = tiles.loc[tiles[CELL_COL].duplicated(keep=False), CELL_COL]
    return sorted(dupes.unique().tolist())


def resolve_tiles(tiles: pd.DataFrame, tie_break: str = "first") -> pd.DataFrame:
    """Apply a tie-break policy so each cell maps to at most one cluster.

    - ``first``: exact cells beat dilated ones, then earlier clusters win.
    - ``reject``: raise :class:`AmbiguousTileError` if any cell is shared.
    - ``all``: keep every pair (inference will multiply matching rows).
    """

    if tie_break not in TIE_BREAK_POLICIES:
        raise ValueError(
            f"Unknown tie_break '{tie_break}', expected one of {', '.join(TIE_BREAK_POLICIES)}"
        )

    if tie_break == "all" or tiles.empty:
        return tiles

    shared = ambiguous_cells(tiles)
    if not shared:
        return tiles

    if tie_break == "reject":
        raise AmbiguousTileError(shared)

    logger.warning("%d cell(s) shared by several clusters, keeping first match", len(shared))
    ordered = tiles.reset_index(drop=True)
    ordered = ordered.sort_values(DILATED_COL, kind="mergesort")
    resolved = ordered.drop_duplicates(CELL_COL, keep="first").sort_index()
    resolved.attrs.update(tiles.attrs)
    return resolved


__all__ = [
    "CELL_COL",
    "DILATED_COL",
    "RESERVED_COLUMNS",
    "TIE_BREAK_POLICIES",
    "ambiguous_cells",
    "expand_tiles",
    "resolve_tiles",
]
