"""
Configuration management for lidar-catalog-engine.

Typed pydantic options for catalog runs and a YAML loader for them.
Options are always passed explicitly into a run; nothing here is global.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError


# -----------------------
# Typed config structures
# -----------------------


class CatalogOptions(BaseModel):
    """Processing options for a catalog run."""

    progress: bool = Field(default=False, description="Log progress after every completed tile")
    buffer: float = Field(default=15.0, ge=0.0, description="Buffer width around each tile in data units")
    buffer_extension: float = Field(
        default=0.1,
        ge=0.0,
        description="Fixed margin added to the buffer before dispatch",
    )
    n_workers: Optional[int] = Field(
        default=None,
        description="Worker processes (None = all available cores, always capped to tile count)",
    )
    tiling_size: float = Field(default=1000.0, gt=0.0, description="Tile edge length in data units")
    return_virtual_raster: bool = Field(
        default=False,
        description="Write one GeoTIFF per tile and return a VRT mosaic instead of a table",
    )
    memory_limit_warning: float = Field(
        default=5e8,
        gt=0.0,
        description="Estimated output size in bytes above which a memory decision is required (inf disables)",
    )
    bytes_per_cell: int = Field(
        default=24,
        gt=0,
        description="Approximate bytes per output cell (3 metrics x 8 bytes); heuristic only",
    )
    origin: Tuple[float, float] = Field(default=(0.0, 0.0), description="Grid origin offset (x, y)")
    export_dir: Optional[str] = Field(
        default=None,
        description="Directory for per-tile rasters (None = <tempdir>/<function name>)",
    )
    ground_only: bool = Field(default=False)
    classification_filter: Optional[List[int]] = Field(default=None)
    chunk_points: int = Field(default=1_000_000, gt=0, description="Points per laspy chunk")

    @field_validator("n_workers")
    @classmethod
    def _at_least_one_worker(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("n_workers must be >= 1 or null")
        return v


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    catalog: CatalogOptions = Field(default_factory=CatalogOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Repository root, where config/default.yaml lives.

    File is at: repo_root/src/lidar_catalog/utils/config.py
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Read a YAML file into a validated AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance

    Raises:
        FileNotFoundError: If the file is missing and allow_missing is False
        ConfigurationError: If the YAML content does not validate
    """
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {cfg_path}: {e}") from e
