"""Tests for merging per-tile results."""

import numpy as np
import pandas as pd
import pytest

from lidar_catalog.processing.merge import build_mosaic, merge_tables, tile_filename
from lidar_catalog.utils.export import export_metrics_to_geotiff


def _table(xs, value):
    return pd.DataFrame({"X": xs, "Y": [0.5] * len(xs), "v": [value] * len(xs)})


def test_tile_filename():
    assert tile_filename("z_metrics", 3) == "z_metrics_ROI3.tiff"


class TestMergeTables:

    def test_concatenates_in_tile_order(self):
        merged = merge_tables([_table([0.5, 1.5], 1), None, _table([2.5], 2)], 1.0)
        assert merged["X"].tolist() == [0.5, 1.5, 2.5]
        assert merged["v"].tolist() == [1, 1, 2]
        assert list(merged.index) == [0, 1, 2]
        assert merged.attrs["resolution"] == 1.0

    def test_skips_empty_tables(self):
        merged = merge_tables([_table([], 1), _table([0.5], 3)], 2.0)
        assert merged["v"].tolist() == [3]

    def test_all_empty(self):
        merged = merge_tables([None, None], 0.5)
        assert merged.empty
        assert list(merged.columns) == ["X", "Y"]
        assert merged.attrs["resolution"] == 0.5


class TestBuildMosaic:

    def _write(self, directory, name, x0, value):
        cells = pd.DataFrame({"X": [x0 + 0.5, x0 + 1.5], "Y": [0.5, 0.5], "v": [value, value]})
        return export_metrics_to_geotiff(cells, directory / name, 1.0)

    def test_tiles_ordered_by_index(self, tmp_path):
        for idx in (10, 2, 0):
            self._write(tmp_path, tile_filename("f", idx), idx * 2, float(idx))
        # Outputs of another function in the same directory are ignored
        self._write(tmp_path, tile_filename("g", 1), 100, 9.0)
        (tmp_path / "notes.txt").write_text("x")

        mosaic = build_mosaic(tmp_path, "f", 1.0)

        assert mosaic.path == tmp_path / "f.vrt"
        assert [p.name for p in mosaic.tiles] == ["f_ROI0.tiff", "f_ROI2.tiff", "f_ROI10.tiff"]
        assert mosaic.resolution == 1.0

        with mosaic.open() as src:
            assert tuple(src.bounds) == pytest.approx((0.0, 0.0, 22.0, 1.0))
            band = src.read(1)
        assert band[0, 0] == 0.0
        assert band[0, 4] == 2.0
        assert band[0, 20] == 10.0

    def test_no_tiles(self, tmp_path):
        self._write(tmp_path, tile_filename("g", 0), 0, 1.0)
        assert build_mosaic(tmp_path, "f") is None
        assert not (tmp_path / "f.vrt").exists()

    def test_partial_run_can_be_indexed(self, tmp_path):
        self._write(tmp_path, tile_filename("f", 1), 2, 1.0)
        mosaic = build_mosaic(tmp_path, "f")
        assert len(mosaic.tiles) == 1
        with mosaic.open() as src:
            assert np.array_equal(src.read(1), np.array([[1.0, 1.0]], dtype=np.float32))
