"""
Cluster shapes produced by GEOSCAN training and their GeoJSON encoding.

A shape is the whole trained payload of a model: one polygon per cluster.
The GeoJSON codec writes coordinates as ``[lng, lat]`` (GeoJSON order) and
keeps points exactly as stored, so ``from_geojson(to_geojson(s)) == s``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple, Union

from ..errors import CorruptDataError


ClusterId = Union[int, str]


@dataclass(frozen=True)
class GeoCluster:
    """A single cluster boundary."""

    id: ClusterId
    """Cluster identifier, unique within a shape."""

    points: Tuple[Tuple[float, float], ...] = ()
    """Ordered ``(lat, lng)`` pairs of the polygon boundary."""

    def __post_init__(self):
        object.__setattr__(
            self,
            "points",
            tuple((float(lat), float(lng)) for lat, lng in self.points),
        )

    @property
    def centroid(self) -> Tuple[float, float]:
        """Mean of the boundary points (closing point counted once)."""

        pts = list(self.points)
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        if not pts:
            raise ValueError(f"Cluster {self.id!r} has no points")
        return (
            sum(lat for lat, _ in pts) / len(pts),
            sum(lng for _, lng in pts) / len(pts),
        )

    def to_feature(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "properties": {"cluster": self.id},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[lng, lat] for lat, lng in self.points]],
            },
        }

    @classmethod
    def from_feature(cls, feature: Dict[str, Any]) -> "GeoCluster":
        cluster_id = feature["properties"]["cluster"]
        if not isinstance(cluster_id, (int, str)) or isinstance(cluster_id, bool):
            raise TypeError(f"Cluster id must be an int or a string, got {cluster_id!r}")

        geometry = feature["geometry"]
        if geometry.get("type") != "Polygon":
            raise TypeError(f"Expected Polygon geometry, got {geometry.get('type')!r}")

        rings = geometry["coordinates"]
        outer = rings[0] if rings else []
        return cls(id=cluster_id, points=tuple((lat, lng) for lng, lat in outer))


@dataclass(frozen=True)
class GeoShape:
    """Immutable collection of clusters."""

    clusters: Tuple[GeoCluster, ...] = field(default_factory=tuple)

    def __post_init__(self):
        clusters = tuple(self.clusters)
        seen = set()
        for cluster in clusters:
            if cluster.id in seen:
                raise ValueError(f"Duplicate cluster id {cluster.id!r}")
            seen.add(cluster.id)
        object.__setattr__(self, "clusters", clusters)

    def __len__(self) -> int:
        return len(self.clusters)

    def __iter__(self):
        return iter(self.clusters)

    @property
    def cluster_ids(self) -> Tuple[ClusterId, ...]:
        return tuple(c.id for c in self.clusters)

    @classmethod
    def from_points(cls, clusters: Dict[ClusterId, Iterable[Tuple[float, float]]]) -> "GeoShape":
        """Build a shape from ``{cluster_id: [(lat, lng), ...]}``."""

        return cls(tuple(GeoCluster(cid, tuple(points)) for cid, points in clusters.items()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [cluster.to_feature() for cluster in self.clusters],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoShape":
        """Decode a GeoJSON ``FeatureCollection`` mapping.

        Raises:
            CorruptDataError: if the mapping is not a valid cluster collection.
        """

        try:
            if data.get("type") != "FeatureCollection":
                raise TypeError(f"Expected a FeatureCollection, got {data.get('type')!r}")
            return cls(tuple(GeoCluster.from_feature(f) for f in data["features"]))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            raise CorruptDataError(f"Invalid cluster GeoJSON: {exc}") from exc

    def to_geojson(self) -> str:
        """Single-line GeoJSON text (floats keep their exact repr)."""

        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_geojson(cls, text: str) -> "GeoShape":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise CorruptDataError(f"Cluster data is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


__all__ = ["ClusterId", "GeoCluster", "GeoShape"]
