"""Tests for configuration loading."""

import math
from pathlib import Path

import pytest

from lidar_catalog.utils.config import AppConfig, CatalogOptions, load_config
from lidar_catalog.utils.errors import ConfigurationError


def test_repository_default_config():
    cfg = load_config()
    assert isinstance(cfg, AppConfig)
    assert cfg.catalog == CatalogOptions()
    assert cfg.logging.level == "INFO"


def test_defaults():
    opts = CatalogOptions()
    assert opts.buffer == 15.0
    assert opts.buffer_extension == 0.1
    assert opts.tiling_size == 1000.0
    assert opts.memory_limit_warning == 5e8
    assert opts.n_workers is None
    assert opts.return_virtual_raster is False
    assert opts.origin == (0.0, 0.0)


def test_partial_yaml(tmp_path: Path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "catalog:\n"
        "  tiling_size: 250\n"
        "  n_workers: 3\n"
        "  memory_limit_warning: .inf\n"
        "  classification_filter: [2, 9]\n"
        "logging:\n"
        "  level: DEBUG\n"
    )
    cfg = load_config(path)
    assert cfg.catalog.tiling_size == 250.0
    assert cfg.catalog.n_workers == 3
    assert math.isinf(cfg.catalog.memory_limit_warning)
    assert cfg.catalog.classification_filter == [2, 9]
    assert cfg.catalog.buffer == 15.0
    assert cfg.logging.level == "DEBUG"


def test_empty_yaml_gives_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == AppConfig()


@pytest.mark.parametrize(
    "body",
    [
        "catalog:\n  buffer: -1\n",
        "catalog:\n  tiling_size: 0\n",
        "catalog:\n  n_workers: 0\n",
        "logging:\n  level: LOUD\n",
    ],
)
def test_invalid_values(tmp_path: Path, body):
    path = tmp_path / "bad.yaml"
    path.write_text(body)
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_file(tmp_path: Path):
    assert load_config(tmp_path / "absent.yaml") == AppConfig()
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml", allow_missing=False)
