"""
Buffered region reader for a catalog.

Reads every point of a catalog that falls inside a bounding box, regardless
of which source files the box spans. Files are streamed in chunks with
laspy so a region never requires loading whole files into memory.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import (
    RecordFilter,
    apply_record_filter,
    create_classification_mask,
)
from .spatial_index import Bounds2D, Catalog, bounds_intersect

logger = setup_logger(__name__)

XYZ = ("X", "Y", "Z")


class CatalogReader:
    """Chunked LAS/LAZ region reader with classification and record filtering.

    The reader only holds file paths and filter settings, so it pickles
    cheaply into worker processes.

    Attributes:
        catalog: Catalog whose files are read
        ground_only: If True, only return ground points (class 2)
        classification_filter: Classification codes to include (overrides ground_only)
        chunk_points: Maximum points per laspy chunk
    """

    def __init__(
        self,
        catalog: Catalog,
        *,
        ground_only: bool = False,
        classification_filter: Optional[List[int]] = None,
        chunk_points: int = 1_000_000,
    ) -> None:
        self.catalog = catalog
        self.ground_only = ground_only
        self.classification_filter = classification_filter
        self.chunk_points = int(chunk_points)

    def _mask_classes(self, chunk) -> np.ndarray:
        if self.ground_only or self.classification_filter is not None:
            if hasattr(chunk, "classification"):
                classes = np.asarray(chunk.classification)
                return create_classification_mask(classes, self.ground_only, self.classification_filter)
        return np.ones(len(chunk), dtype=bool)

    def _iter_chunks(self, bbox: Bounds2D, select: Sequence[str]) -> Iterator[pd.DataFrame]:
        import laspy

        for entry in self.catalog:
            if not bounds_intersect(entry.bounds, bbox):
                continue
            with laspy.open(str(entry.path)) as reader:
                for chunk in reader.chunk_iterator(self.chunk_points):
                    mask = self._mask_classes(chunk)

                    x = np.asarray(chunk.x, dtype=np.float64)
                    y = np.asarray(chunk.y, dtype=np.float64)
                    mask &= (
                        (x >= bbox.min_x)
                        & (x <= bbox.max_x)
                        & (y >= bbox.min_y)
                        & (y <= bbox.max_y)
                    )
                    if not np.any(mask):
                        continue

                    columns = {
                        "X": x[mask],
                        "Y": y[mask],
                        "Z": np.asarray(chunk.z, dtype=np.float64)[mask],
                    }
                    for dim in select:
                        columns[dim] = np.asarray(chunk[dim])[mask]
                    yield pd.DataFrame(columns)

    def read(
        self,
        bbox: Bounds2D,
        select: Optional[Sequence[str]] = None,
        filter: Optional[RecordFilter] = None,
    ) -> Optional[pd.DataFrame]:
        """Read the points inside ``bbox`` from every intersecting file.

        Args:
            bbox: Region to read; may extend beyond the catalog extent
            select: Extra point dimensions to load besides X, Y, Z
                (laspy dimension names, e.g. ``["intensity", "classification"]``)
            filter: Query expression or mask callable applied to the points

        Returns:
            DataFrame with columns X, Y, Z and the selected dimensions,
            or None when no point survives
        """
        select = [d for d in (select or []) if d not in XYZ]
        frames = list(self._iter_chunks(bbox, select))
        if not frames:
            return None

        points = pd.concat(frames, ignore_index=True) if len(frames) > 1 else frames[0]
        points = apply_record_filter(points, filter)
        if points.empty:
            return None

        logger.debug(
            f"Read {len(points):,} points in ({bbox.min_x:.1f}, {bbox.min_y:.1f}, "
            f"{bbox.max_x:.1f}, {bbox.max_y:.1f}) from {len(frames)} chunks"
        )
        return points.reset_index(drop=True)
