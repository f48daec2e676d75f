"""
Exception types raised by catalog processing.

Empty tiles and user aborts are outcomes, not errors, and have no exception
type here.
"""

from __future__ import annotations

from typing import Dict


class CatalogError(Exception):
    """Base class for catalog processing errors."""


class ConfigurationError(CatalogError, ValueError):
    """Invalid run configuration, detected before any tile is dispatched."""


class TileProcessingError(CatalogError, RuntimeError):
    """
    One or more tiles failed.

    Raised only after every in-flight tile has finished. Tiles that succeeded
    keep their persisted outputs on disk.

    Attributes:
        failures: Mapping of tile index to "ExceptionType: message"
        n_tiles: Total number of tiles in the run
    """

    def __init__(self, failures: Dict[int, str], n_tiles: int):
        self.failures = dict(sorted(failures.items()))
        self.n_tiles = n_tiles
        shown = ", ".join(str(idx) for idx in list(self.failures)[:20])
        if len(self.failures) > 20:
            shown += ", ..."
        super().__init__(
            f"{len(self.failures)} tiles failed out of {n_tiles} (tiles: {shown})"
        )
