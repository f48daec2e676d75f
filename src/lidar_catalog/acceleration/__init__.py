"""
Acceleration Module

This module provides the tiled execution infrastructure:
- Grid-aligned tiling with buffers, optionally pruned by a mask raster
- Parallel processing for tile-level parallelization
- Per-tile worker functions
"""

from .parallel_executor import TileParallelExecutor
from .tile_workers import process_grid_tile, trim_buffer
from .tiling import (
    CellSizeSpec,
    FromMask,
    RasterMask,
    Tile,
    Tiler,
    Uniform,
    as_cell_size_spec,
    make_tiles,
    resolve_cell_size,
    snap_extent,
)

__all__ = [
    # Tiling primitives
    "CellSizeSpec",
    "FromMask",
    "RasterMask",
    "Tile",
    "Tiler",
    "Uniform",
    "as_cell_size_spec",
    "make_tiles",
    "resolve_cell_size",
    "snap_extent",
    # Parallel processing
    "TileParallelExecutor",
    "process_grid_tile",
    "trim_buffer",
]
