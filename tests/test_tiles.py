"""
Unit Tests for tile expansion and tie-break policies (geoscan.spatial.tiles)
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
import pandas as pd

from geoscan.errors import AmbiguousTileError
from geoscan.model import GeoCluster
from geoscan.spatial.tiles import ambiguous_cells, expand_tiles, resolve_tiles

from tests.conftest import StubIndex, square


class TestExpandTiles:
    """Test expanding clusters into (cluster, h3, dilated) rows."""

    def test_single_cell_cluster(self, grid_index):
        """Test the table layout for a one-cell cluster."""
        clusters = [GeoCluster("A", tuple(square(0, 0)))]
        tiles = expand_tiles(clusters, 9, 0, index=grid_index)

        assert list(tiles.columns) == ["cluster", "h3", "dilated"]
        assert tiles["h3"].tolist() == ["R0C0"]
        assert tiles["cluster"].tolist() == ["A"]
        assert not tiles["dilated"].any()
        assert tiles.attrs["h3_res"] == 9
        assert tiles.attrs["layers"] == 0

    def test_layers_produce_superset(self, grid_index):
        """Test that dilation keeps every exact cell and flags the new ones."""
        clusters = [GeoCluster("A", tuple(square(0, 0)))]
        exact = set(expand_tiles(clusters, 9, 0, index=grid_index)["h3"])
        ring1 = expand_tiles(clusters, 9, 1, index=grid_index)

        assert exact <= set(ring1["h3"])
        assert len(ring1) == 9
        assert ring1.loc[~ring1["dilated"], "h3"].tolist() == ["R0C0"]
        assert ring1["dilated"].sum() == 8

    def test_exact_cells_listed_before_dilated(self, grid_index):
        """Test row order within a cluster."""
        clusters = [GeoCluster("A", tuple(square(0, 0, side=2)))]
        tiles = expand_tiles(clusters, 9, 1, index=grid_index)

        flags = tiles["dilated"].tolist()
        assert flags == sorted(flags)

    def test_rows_follow_cluster_order(self, grid_index):
        """Test that rows keep the order of the clusters."""
        clusters = [
            GeoCluster(2, tuple(square(0, 4))),
            GeoCluster(1, tuple(square(0, 0))),
        ]
        tiles = expand_tiles(clusters, 9, 0, index=grid_index)
        assert tiles["cluster"].tolist() == [2, 1]

    def test_cell_ids_are_upper_cased(self):
        """Test that index output is normalised to upper-case ids."""
        cluster = GeoCluster("A", ((0, 0), (0, 1), (1, 1)))
        index = StubIndex(point_cells={}, polygon_cells={cluster.points: {"8a2a1072b59ffff"}})

        tiles = expand_tiles([cluster], 9, index=index)
        assert tiles["h3"].tolist() == ["8A2A1072B59FFFF"]

    def test_custom_prediction_column(self, grid_index):
        """Test naming the cluster column."""
        tiles = expand_tiles(
            [GeoCluster("A", tuple(square(0, 0)))], 9, index=grid_index, prediction_col="zone"
        )
        assert "zone" in tiles.columns

    @pytest.mark.parametrize("name", ["h3", "dilated"])
    def test_reserved_prediction_column(self, grid_index, name):
        """Test that the cluster column cannot shadow a tile column."""
        with pytest.raises(ValueError, match="reserved"):
            expand_tiles([GeoCluster("A", tuple(square(0, 0)))], 9, index=grid_index, prediction_col=name)

    def test_no_clusters(self, grid_index):
        """Test an empty cluster list."""
        tiles = expand_tiles([], 9, 2, index=grid_index)
        assert tiles.empty
        assert list(tiles.columns) == ["cluster", "h3", "dilated"]

    def test_negative_layers_rejected(self, grid_index):
        """Test that negative ring counts are rejected."""
        with pytest.raises(ValueError):
            expand_tiles([GeoCluster("A", tuple(square(0, 0)))], 9, -1, index=grid_index)

    def test_executor_matches_sequential(self, grid_index, two_squares_shape):
        """Test that parallel expansion gives the same table."""
        sequential = expand_tiles(two_squares_shape.clusters, 9, 1, index=grid_index)
        with ThreadPoolExecutor(max_workers=2) as executor:
            parallel = expand_tiles(two_squares_shape.clusters, 9, 1, index=grid_index, executor=executor)

        pd.testing.assert_frame_equal(sequential, parallel)

    @pytest.mark.integration
    def test_real_h3_index_by_default(self, new_york_shape):
        """Test that H3 is used when no index is given."""
        tiles = expand_tiles(new_york_shape.clusters, 11)

        assert set(tiles["cluster"]) == {1, 2}
        assert tiles["h3"].str.fullmatch(r"[0-9A-F]{15}").all()


class TestResolveTiles:
    """Test tie-break policies for cells shared by several clusters."""

    @pytest.fixture
    def shared_tiles(self, grid_index, two_squares_shape):
        # With one ring, both clusters claim column 1 (rows -1..1)
        return expand_tiles(two_squares_shape.clusters, 9, 1, index=grid_index)

    def test_ambiguous_cells(self, shared_tiles):
        """Test listing the shared cells."""
        assert ambiguous_cells(shared_tiles) == ["R-1C1", "R0C1", "R1C1"]

    def test_mixed_case_ids_are_one_cell(self):
        """Test that ids differing only by case count as the same cell."""
        west = GeoCluster("west", ((0, 0), (0, 1), (1, 1)))
        east = GeoCluster("east", ((5, 5), (5, 6), (6, 6)))
        index = StubIndex(point_cells={}, polygon_cells={west.points: {"1a"}, east.points: {"1A"}})
        tiles = expand_tiles([west, east], 9, index=index)

        assert ambiguous_cells(tiles) == ["1A"]
        assert resolve_tiles(tiles, "first")["cluster"].tolist() == ["west"]

    def test_first_keeps_earliest_cluster(self, shared_tiles):
        """Test that the earlier cluster wins shared dilated cells."""
        resolved = resolve_tiles(shared_tiles, "first")

        assert resolved["h3"].is_unique
        winners = resolved.set_index("h3")["cluster"]
        assert winners["R0C1"] == "west"
        assert winners["R0C2"] == "east"
        assert len(resolved) == len(shared_tiles) - 3

    def test_first_prefers_exact_over_dilated(self, grid_index):
        """Test that a cell inside a polygon beats a halo cell."""
        clusters = [
            GeoCluster("halo", tuple(square(0, 0))),
            GeoCluster("core", tuple(square(0, 1))),
        ]
        tiles = expand_tiles(clusters, 9, 1, index=grid_index)
        winners = resolve_tiles(tiles, "first").set_index("h3")["cluster"]

        # R0C1 is inside "core" and only in the halo of the first cluster
        assert winners["R0C1"] == "core"
        assert winners["R0C0"] == "halo"

    def test_reject_raises(self, shared_tiles):
        """Test that reject lists the shared cells."""
        with pytest.raises(AmbiguousTileError) as excinfo:
            resolve_tiles(shared_tiles, "reject")
        assert excinfo.value.cells == ["R-1C1", "R0C1", "R1C1"]

    def test_reject_passes_unambiguous(self, grid_index, two_squares_shape):
        """Test that reject leaves disjoint tiles alone."""
        tiles = expand_tiles(two_squares_shape.clusters, 9, 0, index=grid_index)
        pd.testing.assert_frame_equal(resolve_tiles(tiles, "reject"), tiles)

    def test_all_keeps_everything(self, shared_tiles):
        """Test that all returns the table unchanged."""
        assert resolve_tiles(shared_tiles, "all") is shared_tiles

    def test_unknown_policy(self, shared_tiles):
        """Test that unknown policies are rejected."""
        with pytest.raises(ValueError, match="Unknown tie_break"):
            resolve_tiles(shared_tiles, "nearest")
