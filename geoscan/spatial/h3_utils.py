"""Utility helpers for mapping coordinates and polygons onto the H3 grid."""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Protocol, Sequence, Set, Tuple, Union

import h3

from ..errors import ConfigurationError


logger = logging.getLogger(__name__)

MIN_RESOLUTION = 0
MAX_RESOLUTION = 15

Point = Tuple[float, float]


def format_cell(cell: Union[str, int]) -> str:
    """Return the canonical upper-case hexadecimal form of an H3 cell id.

    Integer ids are rendered as hex without leading zeros, matching the
    ``%X`` formatting used by the JVM writer of the same model.
    """

    if isinstance(cell, int):
        return f"{cell:X}"
    return str(cell).strip().upper()


def cell_diagonal_m(resolution: int) -> float:
    """Approximate cell diagonal (twice the average hexagon edge) in metres."""

    return 2.0 * h3.average_hexagon_edge_length(resolution, unit="m")


def select_precision(
    epsilon: float,
    *,
    min_res: int = MIN_RESOLUTION,
    max_res: int = MAX_RESOLUTION,
) -> int:
    """Return the coarsest H3 resolution whose cell diagonal fits in ``epsilon``.

    ``epsilon`` is the clustering distance in metres. Coarser cells keep the
    tile table small, so the first resolution that satisfies the accuracy
    constraint wins.

    Raises:
        ConfigurationError: if ``epsilon`` is not a finite positive number or
            no resolution in ``[min_res, max_res]`` is fine enough.
    """

    try:
        eps = float(epsilon)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"epsilon must be a number, got {epsilon!r}") from exc

    if not math.isfinite(eps) or eps <= 0:
        raise ConfigurationError(f"epsilon must be a finite positive distance, got {epsilon!r}")

    if not (MIN_RESOLUTION <= min_res <= max_res <= MAX_RESOLUTION):
        raise ConfigurationError(
            f"Invalid resolution range [{min_res}, {max_res}], "
            f"expected within [{MIN_RESOLUTION}, {MAX_RESOLUTION}]"
        )

    for resolution in range(min_res, max_res + 1):
        if cell_diagonal_m(resolution) <= eps:
            logger.debug("epsilon=%sm -> H3 resolution %d", eps, resolution)
            return resolution

    raise ConfigurationError(
        f"Could not infer precision from epsilon value {eps}m: the finest "
        f"resolution ({max_res}) has a {cell_diagonal_m(max_res):.3f}m cell diagonal"
    )


class SpatialIndex(Protocol):
    """Discrete global grid used to tile clusters and locate points."""

    def cell_id(self, lat: float, lng: float, precision: int) -> str:
        ...

    def poly_fill(self, points: Sequence[Point], precision: int, layers: int = 0) -> Set[str]:
        ...


def _open_ring(points: Sequence[Point]) -> List[Point]:
    ring = [(float(lat), float(lng)) for lat, lng in points]
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def _densify_edge(start: Point, end: Point, step_m: float) -> Iterable[Point]:
    """Yield points along ``start -> end`` spaced at most ``step_m`` apart."""

    distance = h3.great_circle_distance(start, end, unit="m")
    steps = max(1, int(math.ceil(distance / step_m))) if step_m > 0 else 1
    for i in range(steps + 1):
        t = i / steps
        yield (
            start[0] + (end[0] - start[0]) * t,
            start[1] + (end[1] - start[1]) * t,
        )


class H3Index:
    """:class:`SpatialIndex` backed by the ``h3`` library."""

    def cell_id(self, lat: float, lng: float, precision: int) -> str:
        return format_cell(h3.latlng_to_cell(lat, lng, precision))

    def interior_cells(self, points: Sequence[Point], precision: int) -> Set[str]:
        """Cells whose centre falls inside the polygon."""

        ring = _open_ring(points)
        if len(ring) < 3:
            return set()
        return set(h3.h3shape_to_cells(h3.LatLngPoly(ring), precision))

    def boundary_cells(self, points: Sequence[Point], precision: int) -> Set[str]:
        """Cells crossed by the polygon boundary, closing edge included."""

        ring = _open_ring(points)
        if not ring:
            return set()
        if len(ring) == 1:
            return {h3.latlng_to_cell(ring[0][0], ring[0][1], precision)}

        step_m = h3.average_hexagon_edge_length(precision, unit="m") / 2.0
        cells: Set[str] = set()
        for start, end in zip(ring, ring[1:] + ring[:1]):
            for lat, lng in _densify_edge(start, end, step_m):
                cells.add(h3.latlng_to_cell(lat, lng, precision))
        return cells

    def poly_fill(self, points: Sequence[Point], precision: int, layers: int = 0) -> Set[str]:
        """Cells intersecting the polygon, dilated by ``layers`` rings."""

        if layers < 0:
            raise ValueError(f"layers must be >= 0, got {layers}")

        cells = self.interior_cells(points, precision) | self.boundary_cells(points, precision)
        if layers > 0:
            dilated: Set[str] = set()
            for cell in cells:
                dilated.update(h3.grid_disk(cell, layers))
            cells = dilated
        return {format_cell(cell) for cell in cells}


DEFAULT_INDEX = H3Index()


def resolve_index(index: Optional[SpatialIndex]) -> SpatialIndex:
    return DEFAULT_INDEX if index is None else index


__all__ = [
    "DEFAULT_INDEX",
    "H3Index",
    "MAX_RESOLUTION",
    "MIN_RESOLUTION",
    "SpatialIndex",
    "cell_diagonal_m",
    "format_cell",
    "resolve_index",
    "select_precision",
]
