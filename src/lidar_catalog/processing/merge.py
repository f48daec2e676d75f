"""
Merging of per-tile results.

Tabular results are concatenated in tile order into one table. Results
written to disk are indexed into a VRT mosaic that reads tiles lazily.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from ..utils.export import build_vrt
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

TILE_SUFFIX = ".tiff"


def tile_filename(func_name: str, tile_index: Union[int, str]) -> str:
    """Name of the raster written for one tile, e.g. ``zmean_ROI3.tiff``."""
    return f"{func_name}_ROI{tile_index}{TILE_SUFFIX}"


def merge_tables(results: Sequence[Optional[pd.DataFrame]], res: float) -> pd.DataFrame:
    """
    Concatenate tile tables in submission order.

    ``None`` entries (empty tiles) are skipped. The merged table carries
    ``attrs['resolution']``; with no non-empty tile it is an empty table with
    X and Y columns.

    Args:
        results: Per-tile results in tile order
        res: Resolution shared by every tile

    Returns:
        Merged DataFrame
    """
    tables = [r for r in results if r is not None and not r.empty]
    if not tables:
        merged = pd.DataFrame(columns=["X", "Y"])
    else:
        merged = pd.concat(tables, ignore_index=True)
    merged.attrs["resolution"] = res
    logger.info(f"Merged {len(tables)} tile tables into {len(merged):,} rows")
    return merged


@dataclass
class Mosaic:
    """A VRT mosaic over per-tile rasters.

    Attributes:
        path: Path of the VRT index file
        tiles: Tile rasters referenced by the VRT, in tile order
        resolution: Cell size shared by the tiles
    """
    path: Path
    tiles: List[Path] = field(default_factory=list)
    resolution: Optional[float] = None

    def open(self):
        """Open the mosaic as a rasterio dataset; tiles are read on demand."""
        import rasterio

        return rasterio.open(str(self.path))


def _tile_sort_key(path: Path, pattern: re.Pattern) -> int:
    return int(pattern.fullmatch(path.name).group(1))


def build_mosaic(export_dir: Union[str, Path], func_name: str, res: Optional[float] = None) -> Optional[Mosaic]:
    """
    Index the tile rasters of ``func_name`` in ``export_dir`` into a VRT.

    Only files named ``<func_name>_ROI<index>.tiff`` are picked up, ordered by
    tile index. The VRT is written to ``<export_dir>/<func_name>.vrt``.

    Returns:
        Mosaic, or None when no tile raster exists (every tile was empty)
    """
    export_dir = Path(export_dir)
    pattern = re.compile(re.escape(func_name) + r"_ROI(\d+)" + re.escape(TILE_SUFFIX))
    tiles = sorted(
        (p for p in export_dir.iterdir() if p.is_file() and pattern.fullmatch(p.name)),
        key=lambda p: _tile_sort_key(p, pattern),
    )
    if not tiles:
        logger.warning(f"No tile rasters found in {export_dir}; no mosaic built")
        return None

    vrt_path = export_dir / f"{func_name}.vrt"
    build_vrt(tiles, vrt_path)
    return Mosaic(path=vrt_path, tiles=tiles, resolution=res)
