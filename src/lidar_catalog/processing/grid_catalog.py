"""
Apply a grid function over an entire catalog.

``grid_catalog`` partitions the catalog into buffered tiles, checks the
expected output size, runs the grid function on every tile in a worker pool
and merges the per-tile results into one table or one VRT mosaic.

Example:
    ctg = Catalog.from_directory("data/tiles")
    result = grid_catalog(ctg, z_metrics, 2.0, options=CatalogOptions(tiling_size=500))
    result.table            # X, Y, zmean, zmax, n
    result.table.attrs      # {'resolution': 2.0}
"""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from ..acceleration.parallel_executor import ProgressCallback, TileParallelExecutor
from ..acceleration.tile_workers import GridFunction, process_grid_tile
from ..acceleration.tiling import (
    FromMask,
    RasterMask,
    Uniform,
    as_cell_size_spec,
    make_tiles,
    resolve_cell_size,
    snap_extent,
)
from ..catalog.reader import CatalogReader
from ..catalog.spatial_index import Catalog
from ..utils.config import CatalogOptions
from ..utils.errors import ConfigurationError
from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import RecordFilter
from .memory_guard import (
    MemoryDecision,
    MemoryPolicy,
    abort_policy,
    decide,
    estimate_output_size,
    format_size,
)
from .merge import Mosaic, TILE_SUFFIX, build_mosaic, merge_tables, tile_filename

logger = setup_logger(__name__)


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class CatalogResult:
    """Outcome of a ``grid_catalog`` run.

    Exactly one of ``table`` / ``mosaic`` is meaningful for a completed run:
    ``table`` in memory mode, ``mosaic`` when tiles were written to disk
    (``mosaic`` is None if every tile was empty). An aborted run has neither.
    """
    status: RunStatus
    resolution: Optional[float] = None
    table: Optional[pd.DataFrame] = None
    mosaic: Optional[Mosaic] = None
    n_tiles: int = 0
    estimated_bytes: Optional[float] = None

    @property
    def aborted(self) -> bool:
        return self.status is RunStatus.ABORTED


def _function_name(grid_func: GridFunction) -> str:
    name = getattr(grid_func, "__name__", None) or type(grid_func).__name__
    return re.sub(r"\W+", "_", name).strip("_") or "grid_func"


def _prepare_export_dir(export_dir: Path, func_name: str) -> None:
    """Create ``export_dir`` and remove outputs of a previous run of ``func_name``."""
    export_dir.mkdir(parents=True, exist_ok=True)
    stale = list(export_dir.glob(f"{func_name}_ROI*{TILE_SUFFIX}"))
    stale_vrt = export_dir / f"{func_name}.vrt"
    if stale_vrt.exists():
        stale.append(stale_vrt)
    for p in stale:
        p.unlink()
    if stale:
        logger.info(f"Removed {len(stale)} files from a previous run in {export_dir}")


def grid_catalog(
    catalog: Catalog,
    grid_func: GridFunction,
    res: Union[float, Uniform, FromMask, RasterMask],
    *,
    func_args: Optional[Mapping[str, Any]] = None,
    select: Optional[Sequence[str]] = None,
    filter: Optional[RecordFilter] = None,
    start: Optional[Tuple[float, float]] = None,
    options: Optional[CatalogOptions] = None,
    memory_policy: MemoryPolicy = abort_policy,
    progress_callback: Optional[ProgressCallback] = None,
    crs: Optional[str] = None,
) -> CatalogResult:
    """
    Apply ``grid_func`` over every tile of ``catalog``.

    Args:
        catalog: Catalog to process
        grid_func: Picklable function ``grid_func(points, res, args)`` returning
            a DataFrame with cell-centre X, Y columns
        res: Output resolution, or a mask raster (``FromMask``/``RasterMask``)
            whose non-empty cells restrict processing and whose pixel size
            is the resolution
        func_args: Extra arguments handed to ``grid_func`` as ``args``. A
            non-default ``start`` is added under the ``"start"`` key.
        select: Extra point dimensions to read besides X, Y, Z
        filter: Record filter (query string or mask callable) for the points
        start: Grid origin offset; defaults to ``options.origin``
        options: Processing options; defaults to ``CatalogOptions()``
        memory_policy: Consulted when the estimated output exceeds
            ``options.memory_limit_warning``. Defaults to aborting.
        progress_callback: Called as ``callback(completed, total)``
        crs: CRS written to tile rasters when results go to disk

    Returns:
        CatalogResult. ``status`` is ABORTED when the memory policy aborted;
        nothing is written in that case.

    Raises:
        ConfigurationError: Invalid configuration, before any tile runs
        TileProcessingError: One or more tiles failed, after all tiles ran
    """
    if not callable(grid_func):
        raise ConfigurationError("grid_func must be callable")
    if len(catalog) == 0:
        raise ConfigurationError("Catalog is empty")

    options = options or CatalogOptions()
    start = tuple(float(v) for v in (start if start is not None else options.origin))
    if len(start) != 2:
        raise ConfigurationError(f"start must be an (x, y) pair, got {start}")

    spec = as_cell_size_spec(res)
    resolution = resolve_cell_size(spec)
    mask = spec.mask if isinstance(spec, FromMask) else None

    # ========================================
    # Reduce the catalog to the mask footprint
    # ========================================
    if mask is not None:
        n_before = len(catalog)
        catalog = catalog.intersecting(mask.bounds, strict=True)
        logger.info(f"Mask keeps {len(catalog)} of {n_before} catalog files")
        if len(catalog) == 0:
            raise ConfigurationError("The mask raster does not overlap any catalog file")

    # ========================================
    # Output size check
    # ========================================
    nbytes = estimate_output_size(catalog.area(), resolution, options.bytes_per_cell)
    decision = decide(nbytes, options.memory_limit_warning, options.return_virtual_raster, memory_policy)
    if decision is MemoryDecision.ABORT:
        logger.warning(
            f"Run aborted before dispatch (estimated output {format_size(nbytes)})"
        )
        return CatalogResult(status=RunStatus.ABORTED, resolution=resolution, estimated_bytes=nbytes)
    save_raster = decision is MemoryDecision.SPILL

    # ========================================
    # Tiles
    # ========================================
    buffer = options.buffer + options.buffer_extension
    extent = snap_extent(catalog.extent(), resolution, start)
    tiles = make_tiles(extent, options.tiling_size, buffer, mask, resolution=resolution, origin=start)
    logger.info(
        f"Catalog of {len(catalog)} files split into {len(tiles)} tiles "
        f"(tile size {options.tiling_size}, buffer {buffer}, resolution {resolution})"
    )

    func_name = _function_name(grid_func)
    export_dir = Path(options.export_dir) if options.export_dir else Path(tempfile.gettempdir()) / func_name
    if save_raster:
        tiles = [t.with_output_path(export_dir / tile_filename(func_name, t.index)) for t in tiles]
        _prepare_export_dir(export_dir, func_name)

    call_args = dict(func_args or {})
    if any(v != 0 for v in start):
        call_args["start"] = start

    reader = CatalogReader(
        catalog,
        ground_only=options.ground_only,
        classification_filter=options.classification_filter,
        chunk_points=options.chunk_points,
    )

    # ========================================
    # Computation over the entire catalog
    # ========================================
    executor = TileParallelExecutor(options.n_workers, progress=options.progress)
    results = executor.map_tiles(
        tiles,
        process_grid_tile,
        {
            "reader": reader,
            "grid_func": grid_func,
            "res": resolution,
            "func_args": call_args,
            "select": select,
            "filter": filter,
            "save_raster": save_raster,
            "crs": crs,
        },
        progress_callback=progress_callback,
    )

    if not save_raster:
        table = merge_tables(results, resolution)
        return CatalogResult(
            status=RunStatus.COMPLETED,
            resolution=resolution,
            table=table,
            n_tiles=len(tiles),
            estimated_bytes=nbytes,
        )

    mosaic = build_mosaic(export_dir, func_name, resolution)
    return CatalogResult(
        status=RunStatus.COMPLETED,
        resolution=resolution,
        mosaic=mosaic,
        n_tiles=len(tiles),
        estimated_bytes=nbytes,
    )
