"""
Worker functions for parallel tile processing.

Each worker function processes a single tile independently and returns its
result. All functions are module level so they pickle for multiprocessing.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

import pandas as pd

from ..catalog.reader import CatalogReader
from ..catalog.spatial_index import Bounds2D
from ..utils.export import export_metrics_to_geotiff
from ..utils.point_cloud_filters import RecordFilter
from .tiling import Tile

logger = logging.getLogger(__name__)

# (points, res, args) -> table with X, Y cell-centre columns
GridFunction = Callable[[pd.DataFrame, float, Mapping[str, Any]], Optional[pd.DataFrame]]


def trim_buffer(metrics: pd.DataFrame, inner: Bounds2D, res: float) -> pd.DataFrame:
    """
    Drop every cell computed from the buffer margin.

    Keeps rows whose (X, Y) cell centre lies inside ``inner`` shrunk by half
    a cell on each side. With cores aligned to the ``res`` grid, each cell
    belongs to exactly one core.

    Args:
        metrics: Table with X, Y cell-centre columns
        inner: Core bounding box of the tile
        res: Cell size

    Returns:
        Trimmed table (index reset)
    """
    if metrics.empty:
        return metrics.reset_index(drop=True)

    tol = res * 1e-6
    half = 0.5 * res
    x = metrics["X"]
    y = metrics["Y"]
    keep = (
        (x >= inner.min_x + half - tol)
        & (x <= inner.max_x - half + tol)
        & (y >= inner.min_y + half - tol)
        & (y <= inner.max_y - half + tol)
    )
    return metrics.loc[keep].reset_index(drop=True)


def process_grid_tile(
    tile: Tile,
    reader: CatalogReader,
    grid_func: GridFunction,
    res: float,
    func_args: Optional[Mapping[str, Any]] = None,
    *,
    select: Optional[Sequence[str]] = None,
    filter: Optional[RecordFilter] = None,
    save_raster: bool = False,
    crs: Optional[str] = None,
) -> Optional[pd.DataFrame]:
    """
    Process a single tile in a worker process.

    Reads the buffered region, applies ``grid_func`` and trims the cells that
    fall in the buffer margin.

    Args:
        tile: Tile with inner and outer bounds (and ``save`` path when writing)
        reader: Catalog reader used for the buffered region
        grid_func: User function ``grid_func(points, res, args)``
        res: Output resolution
        func_args: Read-only extra arguments handed to ``grid_func``
        select: Extra point dimensions to read
        filter: Record filter applied to the points
        save_raster: If True, write the trimmed table to ``tile.save``
        crs: CRS written to the raster when saving

    Returns:
        Trimmed table tagged with ``attrs['resolution']``, or None when the
        tile holds no points, yields no cells, or was written to disk
    """
    points = reader.read(tile.outer, select=select, filter=filter)
    if points is None:
        logger.debug(f"Tile {tile.name}: no points in buffered region, skipped")
        return None

    metrics = grid_func(points, res, dict(func_args or {}))
    if metrics is None:
        return None
    if not isinstance(metrics, pd.DataFrame):
        raise TypeError(
            f"Grid function must return a pandas DataFrame, got {type(metrics).__name__}"
        )
    missing = {"X", "Y"} - set(metrics.columns)
    if missing:
        raise ValueError(f"Grid function output is missing columns: {sorted(missing)}")

    metrics = trim_buffer(metrics, tile.inner, res)
    metrics.attrs["resolution"] = res

    logger.debug(
        f"Tile {tile.name} complete: inner=({tile.inner.min_x:.1f}, {tile.inner.min_y:.1f}) "
        f"points={len(points):,} cells={len(metrics):,}"
    )

    if not save_raster:
        return metrics

    if metrics.empty:
        return None
    if tile.save is None:
        raise ValueError(f"Tile {tile.name} has no output path")
    export_metrics_to_geotiff(metrics, tile.save, res, crs=crs)
    return None
