"""GEOSCAN model serving: H3 tiling, outer-join inference and persistence."""

from .errors import (
    AmbiguousTileError,
    ConfigurationError,
    CorruptDataError,
    GeoscanError,
    ModelExistsError,
    ModelNotFoundError,
    SchemaError,
)
from .model import GeoCluster, GeoscanModel, GeoscanParams, GeoShape
from .spatial import H3Index, SpatialIndex, expand_tiles, select_precision

__version__ = "0.2.0"

__all__ = [
    "AmbiguousTileError",
    "ConfigurationError",
    "CorruptDataError",
    "GeoCluster",
    "GeoShape",
    "GeoscanError",
    "GeoscanModel",
    "GeoscanParams",
    "H3Index",
    "ModelExistsError",
    "ModelNotFoundError",
    "SchemaError",
    "SpatialIndex",
    "expand_tiles",
    "select_precision",
]
