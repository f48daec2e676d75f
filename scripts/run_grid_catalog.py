"""
Compute per-cell Z metrics over a catalog of LAS/LAZ files.

Example:
    python scripts/run_grid_catalog.py data/tiles --res 2 --out zstats.csv
    python scripts/run_grid_catalog.py data/tiles --res 1 --spill --export-dir out/
    python scripts/run_grid_catalog.py data/tiles --mask footprint.tif
"""

import argparse
import math
import sys
from pathlib import Path

# Add the src to the path to import modules
sys.path.append(str(Path(__file__).parent.parent / "src"))

from lidar_catalog.acceleration import RasterMask
from lidar_catalog.catalog import Catalog
from lidar_catalog.processing import grid_catalog, policy_from_name, z_metrics
from lidar_catalog.utils.config import load_config
from lidar_catalog.utils.errors import CatalogError, TileProcessingError
from lidar_catalog.utils.logging import set_package_level, setup_logger


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grid metrics over a LAS/LAZ catalog")
    parser.add_argument("input_dir", type=str, help="Directory containing LAS/LAZ files")
    res_group = parser.add_mutually_exclusive_group(required=True)
    res_group.add_argument("--res", type=float, help="Output cell size")
    res_group.add_argument("--mask", type=str, help="Mask raster; its pixel size is the resolution")
    parser.add_argument("--config", type=str, default=None, help="YAML config (default: config/default.yaml)")
    parser.add_argument("--tiling-size", type=float, default=None, help="Tile edge length")
    parser.add_argument("--buffer", type=float, default=None, help="Buffer width around tiles")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes")
    parser.add_argument("--spill", action="store_true", help="Write GeoTIFF tiles and a VRT mosaic")
    parser.add_argument("--export-dir", type=str, default=None, help="Directory for tile rasters")
    parser.add_argument("--no-memory-check", action="store_true", help="Disable the output size check")
    parser.add_argument(
        "--on-memory-warning",
        choices=["ask", "proceed", "spill", "abort"],
        default="ask",
        help="What to do when the estimated output is too large",
    )
    parser.add_argument("--recursive", action="store_true", help="Search input_dir recursively")
    parser.add_argument("--progress", action="store_true", help="Log progress after every tile")
    parser.add_argument("--out", type=str, default=None, help="CSV output for table results")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    set_package_level(cfg.logging.level, cfg.logging.file)
    logger = setup_logger("lidar_catalog.cli", level=cfg.logging.level)

    overrides = {}
    if args.tiling_size is not None:
        overrides["tiling_size"] = args.tiling_size
    if args.buffer is not None:
        overrides["buffer"] = args.buffer
    if args.workers is not None:
        overrides["n_workers"] = args.workers
    if args.spill:
        overrides["return_virtual_raster"] = True
    if args.export_dir is not None:
        overrides["export_dir"] = args.export_dir
    if args.no_memory_check:
        overrides["memory_limit_warning"] = math.inf
    if args.progress:
        overrides["progress"] = True
    options = cfg.catalog.model_copy(update=overrides)

    try:
        catalog = Catalog.from_directory(args.input_dir, recursive=args.recursive)
        res = RasterMask.from_file(args.mask) if args.mask else args.res
        result = grid_catalog(
            catalog,
            z_metrics,
            res,
            options=options,
            memory_policy=policy_from_name(args.on_memory_warning),
        )
    except TileProcessingError as e:
        logger.error(f"Run failed: {e}")
        for idx, msg in e.failures.items():
            logger.error(f"  Tile {idx}: {msg}")
        return 1
    except CatalogError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    if result.aborted:
        logger.info("Aborted; nothing was computed")
        return 0

    if result.mosaic is not None:
        logger.info(f"Mosaic written to {result.mosaic.path} ({len(result.mosaic.tiles)} tiles)")
    elif result.table is not None:
        logger.info(f"Computed {len(result.table):,} cells at resolution {result.resolution}")
        if args.out:
            Path(args.out).parent.mkdir(parents=True, exist_ok=True)
            result.table.to_csv(args.out, index=False)
            logger.info(f"Table written to {args.out}")
    else:
        logger.info("No tile produced output")
    return 0


if __name__ == "__main__":
    sys.exit(main())
