"""Parameters shared by GEOSCAN models and their persisted metadata."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Sequence

import pandas as pd

from ..errors import ConfigurationError, SchemaError
from ..spatial.tiles import RESERVED_COLUMNS


# Python attribute -> persisted param name (same names as the JVM model)
PARAM_NAMES: Dict[str, str] = {
    "epsilon": "epsilon",
    "min_pts": "minPts",
    "latitude_col": "latitudeCol",
    "longitude_col": "longitudeCol",
    "prediction_col": "predictionCol",
}


@dataclass(frozen=True)
class GeoscanParams:
    """
    GEOSCAN model parameters.

    Attributes:
        epsilon: Clustering distance in metres; drives the H3 precision
        min_pts: Minimum neighbours used at training time (kept for lineage)
        latitude_col: Input column holding latitudes
        longitude_col: Input column holding longitudes
        prediction_col: Output column receiving the cluster id
    """

    epsilon: float = 50.0
    min_pts: int = 3
    latitude_col: str = "latitude"
    longitude_col: str = "longitude"
    prediction_col: str = "cluster"

    def __post_init__(self):
        for name in ("latitude_col", "longitude_col", "prediction_col"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"{name} must be a non-empty string, got {value!r}")
        if self.prediction_col in (self.latitude_col, self.longitude_col):
            raise ConfigurationError(
                f"prediction_col '{self.prediction_col}' collides with a coordinate column"
            )
        if self.prediction_col in RESERVED_COLUMNS:
            raise ConfigurationError(
                f"prediction_col '{self.prediction_col}' is reserved for tile tables"
            )
        if isinstance(self.min_pts, bool) or not isinstance(self.min_pts, int) or self.min_pts < 1:
            raise ConfigurationError(f"min_pts must be a positive integer, got {self.min_pts!r}")

    def to_param_map(self) -> Dict[str, Any]:
        """Persisted ``paramMap`` form (camelCase names)."""

        return {PARAM_NAMES[k]: v for k, v in asdict(self).items()}

    @classmethod
    def default_param_map(cls) -> Dict[str, Any]:
        return cls().to_param_map()

    @classmethod
    def from_param_map(cls, param_map: Dict[str, Any]) -> "GeoscanParams":
        """Build params from a persisted ``paramMap``; unknown names are ignored."""

        by_param = {v: k for k, v in PARAM_NAMES.items()}
        kwargs = {by_param[k]: v for k, v in param_map.items() if k in by_param}
        return cls(**kwargs)

    @staticmethod
    def known_params() -> List[str]:
        return [PARAM_NAMES[f.name] for f in fields(GeoscanParams)]

    def validate_columns(self, columns: Sequence[str], dtypes: Dict[str, Any] = None) -> List[str]:
        """Check an input schema and return the output column list.

        Latitude and longitude must be present (and numeric when ``dtypes`` is
        given); the prediction column must not exist yet.
        """

        columns = list(columns)
        for name in (self.latitude_col, self.longitude_col):
            if name not in columns:
                raise SchemaError(f"Input is missing column '{name}'")
            if dtypes is not None and not pd.api.types.is_numeric_dtype(dtypes[name]):
                raise SchemaError(f"Column '{name}' must be numeric, got {dtypes[name]}")

        if self.prediction_col in columns:
            raise SchemaError(f"Output column '{self.prediction_col}' already exists")

        return columns + [self.prediction_col]


__all__ = ["GeoscanParams", "PARAM_NAMES"]
