"""
Spatial index over a catalog of LAS/LAZ files.

A catalog is the ordered list of source files together with their header
bounding boxes. It is built once from file headers and is read-only
afterwards, so it can be shared with worker processes as-is.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Tuple

from ..utils.errors import ConfigurationError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

LAS_SUFFIXES = (".las", ".laz")


@dataclass(frozen=True)
class Bounds2D:
    """2D bounding box defined by min/max coordinates.

    Attributes:
        min_x: Minimum X coordinate
        min_y: Minimum Y coordinate
        max_x: Maximum X coordinate
        max_y: Maximum Y coordinate
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def area(self) -> float:
        return self.width * self.height

    def expand(self, margin: float) -> "Bounds2D":
        """Return the box grown by ``margin`` on every side."""
        return Bounds2D(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


def bounds_intersect(a: Bounds2D, b: Bounds2D) -> bool:
    """Check if two 2D bounding boxes intersect (inclusive edges)."""
    return not (a.max_x < b.min_x or a.min_x > b.max_x or a.max_y < b.min_y or a.min_y > b.max_y)


def bounds_overlap(a: Bounds2D, b: Bounds2D) -> bool:
    """Check if two boxes share a region of positive area (touching edges do not count)."""
    return a.min_x < b.max_x and b.min_x < a.max_x and a.min_y < b.max_y and b.min_y < a.max_y


def union_bounds(boxes: Iterable[Bounds2D]) -> Bounds2D:
    """Smallest box enclosing every box in ``boxes``."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for b in boxes:
        min_x = min(min_x, b.min_x)
        min_y = min(min_y, b.min_y)
        max_x = max(max_x, b.max_x)
        max_y = max(max_y, b.max_y)
    if min_x == math.inf:
        raise ValueError("Cannot compute the union of an empty set of bounds")
    return Bounds2D(min_x, min_y, max_x, max_y)


@dataclass(frozen=True)
class CatalogEntry:
    """One source file of the catalog and its header bounding box."""
    path: Path
    bounds: Bounds2D


def scan_las_bounds(files: Iterable[str | Path]) -> List[CatalogEntry]:
    """Scan LAS/LAZ file headers to get 2D bounds per file.

    Args:
        files: Iterable of LAS/LAZ file paths

    Returns:
        List of CatalogEntry, in input order.
    """
    import laspy

    out: List[CatalogEntry] = []
    for f in files:
        fp = Path(f)
        with laspy.open(str(fp)) as r:
            h = r.header
            b = Bounds2D(
                float(h.x_min),
                float(h.y_min),
                float(h.x_max),
                float(h.y_max),
            )
        out.append(CatalogEntry(fp, b))
    return out


class Catalog:
    """Ordered, immutable collection of catalog entries.

    Answers extent and area queries for the whole collection. The area is
    the extent's width times height and is only meant for coarse memory
    estimation.

    Example:
        ctg = Catalog.from_directory("data/tiles")
        ctg.extent()   # Bounds2D covering every file
        ctg.area()     # extent width * height
    """

    def __init__(self, entries: Sequence[CatalogEntry]):
        self._entries: Tuple[CatalogEntry, ...] = tuple(entries)
        self._extent = union_bounds(e.bounds for e in self._entries) if self._entries else None

    @classmethod
    def from_files(cls, files: Iterable[str | Path]) -> "Catalog":
        """Build a catalog from explicit LAS/LAZ paths by reading their headers."""
        entries = scan_las_bounds(files)
        logger.info(f"Catalog built from {len(entries)} files")
        return cls(entries)

    @classmethod
    def from_directory(cls, directory: str | Path, *, recursive: bool = False) -> "Catalog":
        """Build a catalog from every LAS/LAZ file in ``directory`` (sorted by name)."""
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigurationError(f"Catalog directory does not exist: {directory}")
        pattern = "**/*" if recursive else "*"
        files = sorted(
            p for p in directory.glob(pattern)
            if p.is_file() and p.suffix.lower() in LAS_SUFFIXES
        )
        if not files:
            logger.warning(f"No LAS/LAZ files found in {directory}")
        return cls.from_files(files)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __getitem__(self, idx: int) -> CatalogEntry:
        return self._entries[idx]

    def __repr__(self) -> str:
        return f"Catalog(n_files={len(self)}, extent={self._extent})"

    def entries(self) -> Tuple[CatalogEntry, ...]:
        return self._entries

    def extent(self) -> Bounds2D:
        """Bounding box of all files."""
        if self._extent is None:
            raise ConfigurationError("Catalog is empty")
        return self._extent

    def area(self) -> float:
        return self.extent().area

    def subset(self, indices: Iterable[int]) -> "Catalog":
        """New catalog holding the entries at ``indices``, in catalog order."""
        keep = sorted(set(indices))
        return Catalog([self._entries[i] for i in keep])

    def intersecting(self, bbox: Bounds2D, *, strict: bool = False) -> "Catalog":
        """New catalog holding the entries whose bounds intersect ``bbox``.

        With ``strict=True`` entries that only touch ``bbox`` along an edge are
        dropped as well.
        """
        test = bounds_overlap if strict else bounds_intersect
        return Catalog([e for e in self._entries if test(e.bounds, bbox)])

    def files(self) -> List[Path]:
        return [e.path for e in self._entries]
