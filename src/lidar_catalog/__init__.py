"""
LiDAR Catalog Engine

Applies per-cell aggregation functions over large collections of LAS/LAZ
files. A catalog is split into buffered tiles laid on a global grid, the
function runs on every tile in a local worker pool, and the per-tile results
are merged into one table or one VRT mosaic of GeoTIFF tiles. The expected
output size is checked before any tile runs.
"""

__version__ = "0.1.0"

from .catalog import *
from .acceleration import *
from .processing import *
from .utils import *

__all__ = [
    "catalog",
    "acceleration",
    "processing",
    "utils",
]
