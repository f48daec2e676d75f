"""Tests for the grid catalog command line script."""

import importlib.util
import io
from pathlib import Path

import pandas as pd
import pytest

SCRIPT = Path(__file__).parent.parent / "scripts" / "run_grid_catalog.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("run_grid_catalog", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_table_to_csv(cli, two_file_catalog, tmp_path):
    out = tmp_path / "res" / "z.csv"
    code = cli.main([
        str(tmp_path / "las"), "--res", "2", "--tiling-size", "10",
        "--workers", "1", "--out", str(out),
    ])
    assert code == 0
    table = pd.read_csv(out)
    assert list(table.columns) == ["X", "Y", "zmean", "zmax", "n"]
    assert len(table) == 200


def test_spill(cli, two_file_catalog, tmp_path):
    export_dir = tmp_path / "tiles"
    code = cli.main([
        str(tmp_path / "las"), "--res", "2", "--tiling-size", "10", "--workers", "1",
        "--spill", "--export-dir", str(export_dir),
    ])
    assert code == 0
    assert (export_dir / "z_metrics.vrt").exists()
    assert len(list(export_dir.glob("z_metrics_ROI*.tiff"))) == 8


def test_abort_on_memory_warning(cli, two_file_catalog, tmp_path):
    config = tmp_path / "tiny.yaml"
    config.write_text("catalog:\n  memory_limit_warning: 1\n")
    export_dir = tmp_path / "tiles"
    code = cli.main([
        str(tmp_path / "las"), "--res", "2", "--config", str(config),
        "--on-memory-warning", "abort", "--export-dir", str(export_dir),
    ])
    assert code == 0
    assert not export_dir.exists()


def test_configuration_error_exit_code(cli, tmp_path):
    assert cli.main([str(tmp_path / "missing"), "--res", "1"]) == 2


def test_res_and_mask_are_exclusive(cli, tmp_path):
    with pytest.raises(SystemExit):
        cli.main([str(tmp_path), "--res", "1", "--mask", "m.tif"])


def test_default_policy_aborts_without_terminal(cli, two_file_catalog, tmp_path, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    config = tmp_path / "tiny.yaml"
    config.write_text("catalog:\n  memory_limit_warning: 1\n")
    export_dir = tmp_path / "tiles"
    code = cli.main([
        str(tmp_path / "las"), "--res", "2", "--config", str(config), "--export-dir", str(export_dir),
    ])
    assert code == 0
    assert not export_dir.exists()
