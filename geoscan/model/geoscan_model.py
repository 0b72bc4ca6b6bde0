"""
GEOSCAN model: cluster shapes served through an H3 join.

GEOSCAN clusters are already described as H3-friendly polygons, so instead of
running point-in-polygon queries the model tiles every cluster with H3 cells
and assigns incoming points with a left-outer join on cell id. Points that
fall in no tile keep their row with an empty prediction.
"""

from __future__ import annotations

import logging
import math
import uuid
from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..errors import ConfigurationError
from ..spatial.h3_utils import DEFAULT_INDEX, SpatialIndex, select_precision
from ..spatial.tiles import CELL_COL, expand_tiles, resolve_tiles
from .params import GeoscanParams
from .persistence import ModelReader, ModelWriter
from .shape import GeoShape


logger = logging.getLogger(__name__)

# Rows per partition when cell lookup is spread over an executor
DEFAULT_PARTITION_SIZE = 50_000


def new_uid(prefix: str = "GeoscanModel") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _coerce_records(records: Any, coordinate_cols: Sequence[str]) -> pd.DataFrame:
    """Return a copy of ``records`` as a dataframe (mappings are accepted).

    An empty sequence becomes an empty frame with float coordinate columns.
    """

    if isinstance(records, pd.DataFrame):
        return records.copy()
    df = pd.DataFrame(list(records))
    if df.empty and len(df.columns) == 0:
        df = pd.DataFrame({col: pd.Series(dtype=float) for col in coordinate_cols})
    return df


def _cells_for(
    lats: np.ndarray,
    lngs: np.ndarray,
    precision: int,
    index: SpatialIndex,
) -> List[Optional[str]]:
    cells: List[Optional[str]] = []
    for lat, lng in zip(lats, lngs):
        if math.isfinite(lat) and math.isfinite(lng):
            cells.append(index.cell_id(float(lat), float(lng), precision).upper())
        else:
            cells.append(None)
    return cells


@dataclass(frozen=True)
class GeoscanModel:
    """
    Trained GEOSCAN model.

    Attributes:
        uid: Unique model identifier, kept across save/load and copy
        shape: Cluster polygons produced by training
        params: Epsilon and column configuration
        index: Spatial index used for tiling and lookup (H3 by default)
    """

    uid: str
    shape: GeoShape
    params: GeoscanParams = field(default_factory=GeoscanParams)
    index: SpatialIndex = field(default=DEFAULT_INDEX, compare=False, repr=False)

    @classmethod
    def from_shape(
        cls,
        shape: GeoShape,
        *,
        uid: Optional[str] = None,
        index: Optional[SpatialIndex] = None,
        **params: Any,
    ) -> "GeoscanModel":
        """Create a model with a fresh uid from ``shape`` and keyword params."""

        return cls(
            uid=uid or new_uid(),
            shape=shape,
            params=GeoscanParams(**params),
            index=index or DEFAULT_INDEX,
        )

    @property
    def epsilon(self) -> float:
        return self.params.epsilon

    @property
    def prediction_col(self) -> str:
        return self.params.prediction_col

    def get_precision(self) -> int:
        """H3 resolution derived from ``epsilon`` (see :func:`select_precision`)."""

        return select_precision(self.params.epsilon)

    def to_geojson(self) -> str:
        return self.shape.to_geojson()

    def copy(self, **overrides: Any) -> "GeoscanModel":
        """Return a model with the same uid and shape and updated params."""

        return replace(self, params=replace(self.params, **overrides))

    def get_tiles(
        self,
        precision: Optional[int] = None,
        layers: int = 0,
        *,
        executor: Optional[Executor] = None,
    ) -> pd.DataFrame:
        """All ``(prediction_col, h3, dilated)`` tiles of the model's clusters."""

        if precision is None:
            precision = self.get_precision()
        return expand_tiles(
            self.shape.clusters,
            precision,
            layers,
            index=self.index,
            executor=executor,
            prediction_col=self.params.prediction_col,
        )

    def transform_schema(self, columns: Sequence[str], dtypes=None) -> List[str]:
        """Validate input columns and return the output column list."""

        return self.params.validate_columns(columns, dtypes)

    def _lookup_cells(
        self,
        df: pd.DataFrame,
        precision: int,
        executor: Optional[Executor],
        partition_size: int,
    ) -> pd.Series:
        lats = df[self.params.latitude_col].to_numpy(dtype=float, na_value=np.nan)
        lngs = df[self.params.longitude_col].to_numpy(dtype=float, na_value=np.nan)
        lookup = partial(_cells_for, precision=precision, index=self.index)

        if executor is not None and len(df) > partition_size:
            n_parts = int(math.ceil(len(df) / partition_size))
            parts = executor.map(lookup, np.array_split(lats, n_parts), np.array_split(lngs, n_parts))
            cells = [cell for part in parts for cell in part]
        else:
            cells = lookup(lats, lngs)

        return pd.Series(cells, index=df.index, dtype=object)

    def transform(
        self,
        records: Any,
        *,
        layers: int = 0,
        tie_break: str = "first",
        executor: Optional[Executor] = None,
        partition_size: int = DEFAULT_PARTITION_SIZE,
        tiles: Optional[pd.DataFrame] = None,
    ) -> pd.DataFrame:
        """
        Assign each record to the cluster whose tiles contain it.

        Args:
            records: DataFrame (or iterable of mappings) with the latitude and
                     longitude columns named in ``params``
            layers: Rings of neighbouring cells added around every cluster
            tie_break: Policy for cells shared by several clusters
                       (``first``, ``reject`` or ``all``)
            executor: Optional executor used to tile clusters and look up cells
                      in parallel partitions
            partition_size: Rows per partition when ``executor`` is given
            tiles: Precomputed :meth:`get_tiles` output to join against instead
                   of expanding the shape again (``layers`` is then ignored);
                   it must have been built at this model's precision

        Returns:
            A new DataFrame with every input row and column plus the
            prediction column, null where no cluster matched. With
            ``tie_break="all"`` rows in shared cells are repeated once per
            matching cluster.
        """

        df = _coerce_records(records, (self.params.latitude_col, self.params.longitude_col))
        self.transform_schema(list(df.columns), df.dtypes.to_dict())

        precision = self.get_precision()
        if tiles is None:
            tiles = self.get_tiles(precision, layers, executor=executor)
        elif tiles.attrs.get("h3_res", precision) != precision:
            raise ConfigurationError(
                f"Tiles were built at resolution {tiles.attrs['h3_res']}, "
                f"model epsilon requires {precision}"
            )
        tiles = resolve_tiles(tiles, tie_break)
        cells = self._lookup_cells(df, precision, executor, partition_size)

        pred_col = self.params.prediction_col
        cell_keys = tiles[CELL_COL].str.upper()

        if tie_break == "all":
            candidates = tiles[pred_col].groupby(cell_keys.to_numpy()).agg(list)
            df[pred_col] = cells.map(candidates)
            df = df.explode(pred_col)
        else:
            lookup = pd.Series(tiles[pred_col].to_numpy(), index=cell_keys.to_numpy())
            predictions = cells.map(lookup)
            if not tiles.empty and pd.api.types.is_integer_dtype(tiles[pred_col]):
                predictions = predictions.astype("Int64")
            df[pred_col] = predictions

        logger.debug(
            "Assigned %d of %d records at resolution %d (layers=%d, tie_break=%s)",
            int(df[pred_col].notna().sum()),
            len(df),
            precision,
            layers,
            tie_break,
        )
        return df

    def predict(self, lat: float, lng: float, *, layers: int = 0) -> Optional[Any]:
        """Cluster id containing a single point, or ``None``."""

        frame = pd.DataFrame(
            {self.params.latitude_col: [float(lat)], self.params.longitude_col: [float(lng)]}
        )
        value = self.transform(frame, layers=layers).iloc[0][self.params.prediction_col]
        if pd.isna(value):
            return None
        return value.item() if hasattr(value, "item") else value

    def write(self) -> ModelWriter:
        return ModelWriter(self)

    def save(self, path, *, overwrite: bool = False):
        writer = self.write()
        if overwrite:
            writer.overwrite()
        return writer.save(path)

    @classmethod
    def read(cls) -> ModelReader:
        return ModelReader(cls)

    @classmethod
    def load(cls, path) -> "GeoscanModel":
        return cls.read().load(path)


__all__ = ["DEFAULT_PARTITION_SIZE", "GeoscanModel", "new_uid"]
