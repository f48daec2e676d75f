"""
Export utilities for catalog outputs.

Provides functions to:
- Rasterize a per-cell metrics table into a multi-band GeoTIFF
- Compose a set of GeoTIFF tiles into a VRT mosaic

These outputs are compatible with QGIS and similar GIS software.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .logging import setup_logger

logger = setup_logger(__name__)

NODATA = -9999.0


def metric_columns(table: pd.DataFrame) -> List[str]:
    """Numeric columns of a metrics table other than the X/Y cell centres."""
    return [
        c for c in table.columns
        if c not in ("X", "Y") and pd.api.types.is_numeric_dtype(table[c])
    ]


def export_metrics_to_geotiff(
    table: pd.DataFrame,
    output_path: Union[str, Path],
    res: float,
    *,
    crs: Optional[str] = None,
    nodata: float = NODATA,
) -> str:
    """
    Rasterize a metrics table to a GeoTIFF with one band per metric column.

    Each row is one cell whose centre is (X, Y); the raster covers the cells'
    bounding box on the ``res`` grid. Cells absent from the table are nodata.

    Args:
        table: DataFrame with X, Y and one or more numeric metric columns
        output_path: Path for output GeoTIFF file
        res: Cell size in data units
        crs: Optional coordinate reference system (e.g. "EPSG:25833")
        nodata: NoData value for empty cells

    Returns:
        Path to created file
    """
    import rasterio
    from rasterio.transform import from_origin

    bands = metric_columns(table)
    if table.empty or not bands:
        raise ValueError("Cannot rasterize an empty table or a table without metric columns")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    x = table["X"].to_numpy(dtype=np.float64)
    y = table["Y"].to_numpy(dtype=np.float64)
    min_x = x.min() - res / 2
    max_y = y.max() + res / 2
    width = int(round((x.max() - x.min()) / res)) + 1
    height = int(round((y.max() - y.min()) / res)) + 1

    cols = np.rint((x - min_x) / res - 0.5).astype(np.int64)
    rows = np.rint((max_y - y) / res - 0.5).astype(np.int64)

    raster = np.full((len(bands), height, width), nodata, dtype=np.float32)
    for b, name in enumerate(bands):
        values = table[name].to_numpy(dtype=np.float64)
        values = np.where(np.isfinite(values), values, nodata)
        raster[b, rows, cols] = values

    transform = from_origin(min_x, max_y, res, res)

    with rasterio.open(
        str(output_path),
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=len(bands),
        dtype=raster.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
        compress="lzw",
    ) as dst:
        dst.write(raster)
        for b, name in enumerate(bands, start=1):
            dst.set_band_description(b, name)

    logger.debug(f"Exported metrics raster ({width}x{height}, {len(bands)} bands) to {output_path}")
    return str(output_path)


def build_vrt(tile_paths: Sequence[Union[str, Path]], output_path: Union[str, Path]) -> str:
    """
    Write a VRT mosaic referencing ``tile_paths`` with GDAL's BuildVRT.

    All tiles must share the same pixel size. Tiles in the VRT's directory
    tree are referenced relative to it, and the first tile's band
    descriptions are carried onto the mosaic bands.

    Args:
        tile_paths: GeoTIFF tiles, in mosaic order
        output_path: Path of the VRT to write

    Returns:
        Path to created file
    """
    import rasterio
    from osgeo import gdal

    gdal.UseExceptions()

    if not tile_paths:
        raise ValueError("Cannot build a mosaic from zero tiles")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # BuildVRT resamples mixed resolutions silently; reject them up front
    with rasterio.open(str(tile_paths[0])) as src:
        res = src.res
        nodata = src.nodata
        descriptions = src.descriptions
    for p in tile_paths[1:]:
        with rasterio.open(str(p)) as src:
            if not np.allclose(src.res, res):
                raise ValueError(f"Tile {p} has a different resolution than {tile_paths[0]}")

    vrt_options = gdal.BuildVRTOptions(
        separate=False,
        allowProjectionDifference=False,
        VRTNodata=nodata,
    )
    vrt = gdal.BuildVRT(
        str(output_path.resolve()),
        [str(Path(p).resolve()) for p in tile_paths],
        options=vrt_options,
    )
    for b, name in enumerate(descriptions, start=1):
        if name and b <= vrt.RasterCount:
            vrt.GetRasterBand(b).SetDescription(name)
    width, height = vrt.RasterXSize, vrt.RasterYSize
    vrt = None  # flushes the VRT to disk

    logger.info(f"Wrote VRT mosaic of {len(tile_paths)} tiles ({width}x{height}) to {output_path}")
    return str(output_path)
