"""
Shared fixtures: synthetic LAS files written with laspy.
"""

from pathlib import Path
from typing import Optional

import numpy as np
import pytest


def _write_las(
    path: Path,
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    classification: Optional[np.ndarray] = None,
    intensity: Optional[np.ndarray] = None,
) -> Path:
    import laspy

    header = laspy.LasHeader(point_format=3, version="1.2")
    header.offsets = np.array([0.0, 0.0, 0.0])
    header.scales = np.array([0.001, 0.001, 0.001])

    las = laspy.LasData(header)
    las.x = np.asarray(x, dtype=np.float64)
    las.y = np.asarray(y, dtype=np.float64)
    las.z = np.asarray(z, dtype=np.float64)
    if classification is not None:
        las.classification = np.asarray(classification, dtype=np.uint8)
    if intensity is not None:
        las.intensity = np.asarray(intensity, dtype=np.uint16)

    path.parent.mkdir(parents=True, exist_ok=True)
    las.write(str(path))
    return path


@pytest.fixture
def write_las():
    """Function writing an uncompressed LAS file from coordinate arrays."""
    return _write_las


@pytest.fixture
def grid_points():
    """Regular 1 m point grid over [0, 40) x [0, 20) with Z = X + Y."""
    xs, ys = np.meshgrid(np.arange(0.25, 40, 1.0), np.arange(0.25, 20, 1.0))
    x = xs.ravel()
    y = ys.ravel()
    return x, y, x + y


@pytest.fixture
def two_file_catalog(tmp_path, write_las, grid_points):
    """Catalog of two LAS files splitting the grid points at X = 20."""
    from lidar_catalog.catalog import Catalog

    x, y, z = grid_points
    left = x < 20
    classes = np.where((x.astype(int) % 2) == 0, 2, 1)
    _write_las(tmp_path / "las" / "a.las", x[left], y[left], z[left], classes[left])
    _write_las(tmp_path / "las" / "b.las", x[~left], y[~left], z[~left], classes[~left])
    return Catalog.from_directory(tmp_path / "las")
