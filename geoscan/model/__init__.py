"""
geoscan.model: the trained model, its parameters, shapes and persistence.

Usage:
    from geoscan.model import GeoscanModel, GeoShape

    shape = GeoShape.from_points({"A": [(40.0, -73.0), (40.0, -72.9), (40.1, -72.9)]})
    model = GeoscanModel.from_shape(shape, epsilon=100.0)

    enriched = model.transform(points_df)
    model.write().overwrite().save("/models/geoscan")
    same = GeoscanModel.load("/models/geoscan")
"""

from .geoscan_model import GeoscanModel, new_uid
from .params import GeoscanParams
from .persistence import ModelReader, ModelWriter
from .shape import GeoCluster, GeoShape

__all__ = [
    "GeoCluster",
    "GeoShape",
    "GeoscanModel",
    "GeoscanParams",
    "ModelReader",
    "ModelWriter",
    "new_uid",
]
