"""Tests for the buffered region reader."""

import numpy as np
import pytest

from lidar_catalog.catalog import Bounds2D, CatalogReader


class TestCatalogReader:

    def test_read_spans_files(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog)
        points = reader.read(Bounds2D(15, 0, 25, 20))

        assert list(points.columns) == ["X", "Y", "Z"]
        # Columns 15..24 of the 1 m grid, 20 rows each
        assert len(points) == 10 * 20
        assert points["X"].min() == pytest.approx(15.25)
        assert points["X"].max() == pytest.approx(24.25)
        np.testing.assert_allclose(points["Z"], points["X"] + points["Y"], atol=1e-6)

    def test_empty_region_returns_none(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog)
        assert reader.read(Bounds2D(100, 100, 200, 200)) is None
        # Inside the extent but between grid points
        assert reader.read(Bounds2D(0.5, 0.5, 0.9, 0.9)) is None

    def test_select_extra_dimensions(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog)
        points = reader.read(Bounds2D(0, 0, 4, 4), select=["classification", "X"])
        assert list(points.columns) == ["X", "Y", "Z", "classification"]
        assert set(points["classification"].unique()) == {1, 2}

    def test_ground_only(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog, ground_only=True)
        points = reader.read(Bounds2D(0, 0, 40, 20))
        # Ground points sit on even integer columns
        assert len(points) == 20 * 20
        assert (np.floor(points["X"]).astype(int) % 2 == 0).all()

    def test_classification_filter(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog, classification_filter=[1])
        points = reader.read(Bounds2D(0, 0, 40, 20), select=["classification"])
        assert (points["classification"] == 1).all()

    def test_record_filters(self, two_file_catalog):
        reader = CatalogReader(two_file_catalog)
        bbox = Bounds2D(0, 0, 40, 20)

        by_query = reader.read(bbox, filter="Z > 50")
        by_mask = reader.read(bbox, filter=lambda df: df["Z"] > 50)
        assert len(by_query) == len(by_mask) > 0
        assert (by_query["Z"] > 50).all()

        assert reader.read(bbox, filter="Z > 1000") is None

    def test_small_chunks_give_same_points(self, two_file_catalog):
        bbox = Bounds2D(3, 3, 33, 13)
        whole = CatalogReader(two_file_catalog).read(bbox)
        chunked = CatalogReader(two_file_catalog, chunk_points=37).read(bbox)

        key = ["Y", "X"]
        np.testing.assert_allclose(
            whole.sort_values(key)[["X", "Y", "Z"]].to_numpy(),
            chunked.sort_values(key)[["X", "Y", "Z"]].to_numpy(),
        )
