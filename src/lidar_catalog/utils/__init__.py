"""
Utility Functions Module

This module provides common utilities used across the project.
- Configuration loading
- Logging
- Error types
- Point cloud filtering utilities
- GeoTIFF and VRT export
"""

from .config import AppConfig, CatalogOptions, LoggingConfig, load_config
from .errors import CatalogError, ConfigurationError, TileProcessingError
from .export import build_vrt, export_metrics_to_geotiff
from .logging import set_package_level, setup_logger
from .point_cloud_filters import (
    apply_record_filter,
    create_classification_mask,
)

__all__ = [
    "AppConfig",
    "CatalogOptions",
    "LoggingConfig",
    "load_config",
    "CatalogError",
    "ConfigurationError",
    "TileProcessingError",
    "build_vrt",
    "export_metrics_to_geotiff",
    "set_package_level",
    "setup_logger",
    "apply_record_filter",
    "create_classification_mask",
]
