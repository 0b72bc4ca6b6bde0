"""
Pytest configuration and shared fixtures for GEOSCAN tests.

This file provides:
- Deterministic fake spatial indexes (no H3 math involved)
- Sample shapes, models and records
- Common test utilities
"""

import math
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

import pytest
import pandas as pd

from geoscan.model import GeoCluster, GeoscanModel, GeoscanParams, GeoShape


# ==============================================================================
# Fake Spatial Indexes
# ==============================================================================

class GridIndex:
    """Square lat/lng grid: one cell per ``size`` degrees.

    ``poly_fill`` returns every cell touched by the polygon's bounding box
    (exact for axis-aligned rectangles) and dilates with Chebyshev rings.
    Cell ids look like ``r3c-2`` so they also exercise case folding.
    """

    def __init__(self, size: float = 1.0):
        self.size = size
        self.cell_calls = 0

    def _rc(self, lat: float, lng: float) -> Tuple[int, int]:
        return int(math.floor(lat / self.size)), int(math.floor(lng / self.size))

    @staticmethod
    def name(row: int, col: int) -> str:
        return f"r{row}c{col}"

    def cell_id(self, lat: float, lng: float, precision: int) -> str:
        self.cell_calls += 1
        return self.name(*self._rc(lat, lng))

    def poly_fill(self, points, precision: int, layers: int = 0) -> Set[str]:
        points = list(points)
        if not points:
            return set()
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        r0, c0 = self._rc(min(lats), min(lngs))
        r1, c1 = self._rc(max(lats), max(lngs))
        # points on the upper edge belong to the cell below
        if max(lats) / self.size == r1 and r1 > r0:
            r1 -= 1
        if max(lngs) / self.size == c1 and c1 > c0:
            c1 -= 1
        return {
            self.name(r, c)
            for r in range(r0 - layers, r1 + layers + 1)
            for c in range(c0 - layers, c1 + layers + 1)
        }


class StubIndex:
    """Index driven by explicit lookup tables."""

    def __init__(self, point_cells: Dict[Tuple[float, float], str], polygon_cells: Dict[object, Iterable[str]]):
        self.point_cells = point_cells
        self.polygon_cells = {key: set(cells) for key, cells in polygon_cells.items()}

    def cell_id(self, lat: float, lng: float, precision: int) -> str:
        return self.point_cells.get((lat, lng), "0")

    def poly_fill(self, points, precision: int, layers: int = 0) -> Set[str]:
        return set(self.polygon_cells.get(tuple(points), set()))


@pytest.fixture
def grid_index() -> GridIndex:
    return GridIndex()


# ==============================================================================
# Sample Shapes
# ==============================================================================

def square(lat: float, lng: float, side: float = 1.0) -> List[Tuple[float, float]]:
    """Closed square ring with its south-west corner at ``(lat, lng)``."""
    return [
        (lat, lng),
        (lat, lng + side),
        (lat + side, lng + side),
        (lat + side, lng),
        (lat, lng),
    ]


@pytest.fixture
def unit_square_shape() -> GeoShape:
    """Single cluster 'A' on the unit square."""
    return GeoShape((GeoCluster("A", ((0, 0), (0, 1), (1, 1), (1, 0))),))


@pytest.fixture
def two_squares_shape() -> GeoShape:
    """Two one-cell clusters separated by one empty cell (columns 0 and 2)."""
    return GeoShape(
        (
            GeoCluster("west", tuple(square(0, 0))),
            GeoCluster("east", tuple(square(0, 2))),
        )
    )


@pytest.fixture
def grid_model(two_squares_shape, grid_index) -> GeoscanModel:
    return GeoscanModel(
        uid="GeoscanModel_test",
        shape=two_squares_shape,
        params=GeoscanParams(epsilon=100.0, latitude_col="lat", longitude_col="lng"),
        index=grid_index,
    )


@pytest.fixture
def new_york_shape() -> GeoShape:
    """Two small real-world polygons (Manhattan blocks around Midtown)."""
    return GeoShape.from_points(
        {
            1: [
                (40.7580, -73.9855),
                (40.7580, -73.9800),
                (40.7540, -73.9800),
                (40.7540, -73.9855),
            ],
            2: [
                (40.7480, -73.9900),
                (40.7480, -73.9840),
                (40.7440, -73.9840),
                (40.7440, -73.9900),
            ],
        }
    )


# ==============================================================================
# Sample Records
# ==============================================================================

@pytest.fixture
def grid_records() -> pd.DataFrame:
    """One point per column of the grid: west cluster, gap, east cluster, far away."""
    return pd.DataFrame(
        {
            "id": [10, 11, 12, 13],
            "lat": [0.5, 0.5, 0.5, 5.5],
            "lng": [0.5, 1.5, 2.5, 5.5],
            "label": ["w", "gap", "e", "far"],
        },
        index=["a", "b", "c", "d"],
    )


@pytest.fixture
def model_dir(tmp_path) -> Path:
    """Save target that does not exist yet."""
    return tmp_path / "models" / "geoscan"


# ==============================================================================
# Utilities
# ==============================================================================

def assert_dataframe_equal(df1: pd.DataFrame, df2: pd.DataFrame, check_dtype=False):
    """Assert two DataFrames are equal (helper)."""
    pd.testing.assert_frame_equal(df1, df2, check_dtype=check_dtype)
