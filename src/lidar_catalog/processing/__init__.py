"""
Processing Module

Catalog-wide grid processing: output size guard, orchestration, merging of
per-tile results and a reference per-cell aggregation.
"""

from .grid_catalog import CatalogResult, RunStatus, grid_catalog
from .grid_metrics import DEFAULT_METRICS, grid_metrics, z_metrics
from .memory_guard import (
    MemoryDecision,
    abort_policy,
    decide,
    estimate_output_size,
    format_size,
    interactive_policy,
    policy_from_name,
    proceed_policy,
    spill_policy,
)
from .merge import Mosaic, build_mosaic, merge_tables, tile_filename

__all__ = [
    "CatalogResult",
    "RunStatus",
    "grid_catalog",
    "DEFAULT_METRICS",
    "grid_metrics",
    "z_metrics",
    "MemoryDecision",
    "abort_policy",
    "decide",
    "estimate_output_size",
    "format_size",
    "interactive_policy",
    "policy_from_name",
    "proceed_policy",
    "spill_policy",
    "Mosaic",
    "build_mosaic",
    "merge_tables",
    "tile_filename",
]
