"""
Catalog Module

Spatial index over a collection of LAS/LAZ files and a region reader that
streams points from every file intersecting a bounding box.
"""

from .spatial_index import (
    Bounds2D,
    Catalog,
    CatalogEntry,
    bounds_intersect,
    bounds_overlap,
    scan_las_bounds,
    union_bounds,
)
from .reader import CatalogReader

__all__ = [
    "Bounds2D",
    "Catalog",
    "CatalogEntry",
    "CatalogReader",
    "bounds_intersect",
    "bounds_overlap",
    "scan_las_bounds",
    "union_bounds",
]
