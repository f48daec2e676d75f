"""
Tile partitioning for catalog processing.

Provides:
- Tile: core region owned by one unit of work plus its buffered read region
- Tiler / make_tiles: grid-aligned partitioning of a catalog extent
- RasterMask: sparse occupancy raster used to prune empty tiles
- Uniform / FromMask: how the output resolution is specified

Tiles are laid on a global grid anchored at an origin offset, so runs over
different sub-extents of the same data share tile boundaries. When an
output resolution is known the boundaries are also snapped to the
resolution grid, which keeps every output cell entirely inside one core.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np

from ..catalog.spatial_index import Bounds2D
from ..utils.errors import ConfigurationError

_EPS = 1e-9


@dataclass(frozen=True)
class Tile:
    """Represents a single tile in a tiled processing scheme.

    Each tile has:
    - 'inner' bounds: the core region whose output this tile owns
    - 'outer' bounds: inner grown by the buffer width on every side, used
      only for reading input

    Cores of all tiles are pairwise non-overlapping and together cover the
    partitioned extent. Outer regions overlap neighbours and may reach past
    the extent, where the reader simply finds no points.

    Attributes:
        index: Sequential position of the tile, stable across identical runs
        i: Tile column index in the tile grid
        j: Tile row index in the tile grid
        inner: Core bounding box
        outer: Buffered bounding box
        save: Output raster path when results are written to disk
    """
    index: int
    i: int
    j: int
    inner: Bounds2D
    outer: Bounds2D
    save: Optional[str] = None

    @property
    def name(self) -> str:
        return str(self.index)

    def with_output_path(self, path: Union[str, Path]) -> "Tile":
        return replace(self, save=str(path))


class RasterMask:
    """Occupancy raster restricting processing to its non-empty cells.

    A cell is occupied when it holds a finite value different from the
    nodata value. Only north-up rasters (no rotation terms) are supported.

    Attributes:
        valid: Boolean (rows x cols) occupancy grid, row 0 at the top
        transform: Affine transform mapping (col, row) to (x, y)
    """

    def __init__(self, data: np.ndarray, transform, nodata: Optional[float] = None):
        from affine import Affine

        transform = Affine(*tuple(transform)[:6])
        if abs(transform.b) > _EPS or abs(transform.d) > _EPS:
            raise ConfigurationError("Rotated mask rasters are not supported")
        if transform.a == 0 or transform.e == 0:
            raise ConfigurationError("Mask raster has a zero pixel size")

        data = np.ma.getdata(data) if np.ma.isMaskedArray(data) else np.asarray(data)
        valid = np.isfinite(data) if np.issubdtype(data.dtype, np.floating) else np.ones(data.shape, dtype=bool)
        if nodata is not None and not (isinstance(nodata, float) and math.isnan(nodata)):
            valid &= data != nodata
        self.valid = valid
        self.transform = transform

    @classmethod
    def from_file(cls, path: Union[str, Path], band: int = 1) -> "RasterMask":
        """Load a mask from a single band of a raster file."""
        import rasterio

        with rasterio.open(str(path)) as src:
            data = src.read(band, masked=True)
            valid_source = ~np.ma.getmaskarray(data)
            mask = cls(np.ma.getdata(data), src.transform, src.nodata)
        mask.valid &= valid_source
        return mask

    @property
    def shape(self) -> Tuple[int, int]:
        return self.valid.shape

    @property
    def resolution(self) -> Tuple[float, float]:
        return (abs(self.transform.a), abs(self.transform.e))

    def square_resolution(self) -> float:
        """The common x/y pixel size.

        Raises:
            ConfigurationError: If x and y resolutions differ
        """
        rx, ry = self.resolution
        if not math.isclose(rx, ry, rel_tol=1e-9):
            raise ConfigurationError(
                f"Rasters with different x y resolutions are not supported ({rx} != {ry})"
            )
        return rx

    @property
    def bounds(self) -> Bounds2D:
        rows, cols = self.shape
        x0, x1 = self.transform.c, self.transform.c + cols * self.transform.a
        y0, y1 = self.transform.f, self.transform.f + rows * self.transform.e
        return Bounds2D(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))

    def _axis_window(self, lo: float, hi: float, origin: float, step: float, n: int) -> Tuple[int, int]:
        # Index range [start, stop) of pixels overlapping (lo, hi) with positive length
        a = (lo - origin) / step
        b = (hi - origin) / step
        if a > b:
            a, b = b, a
        start = max(0, math.floor(a + _EPS))
        stop = min(n, math.ceil(b - _EPS))
        return start, stop

    def occupied(self, bbox: Bounds2D) -> bool:
        """True if any non-empty mask cell overlaps ``bbox`` with positive area."""
        rows, cols = self.shape
        c0, c1 = self._axis_window(bbox.min_x, bbox.max_x, self.transform.c, self.transform.a, cols)
        r0, r1 = self._axis_window(bbox.min_y, bbox.max_y, self.transform.f, self.transform.e, rows)
        if c0 >= c1 or r0 >= r1:
            return False
        return bool(self.valid[r0:r1, c0:c1].any())


@dataclass(frozen=True)
class Uniform:
    """Output resolution given as a single cell size."""
    res: float


@dataclass(frozen=True)
class FromMask:
    """Output resolution and processing footprint taken from a mask raster."""
    mask: RasterMask


CellSizeSpec = Union[Uniform, FromMask]


def as_cell_size_spec(res: Union[float, int, Uniform, FromMask, RasterMask]) -> CellSizeSpec:
    """Normalise a plain number or a mask into a CellSizeSpec."""
    if isinstance(res, (Uniform, FromMask)):
        return res
    if isinstance(res, RasterMask):
        return FromMask(res)
    if isinstance(res, numbers.Real) and not isinstance(res, bool):
        return Uniform(float(res))
    raise ConfigurationError(f"Unsupported resolution specification: {res!r}")


def resolve_cell_size(spec: CellSizeSpec) -> float:
    """Output resolution for a CellSizeSpec.

    Raises:
        ConfigurationError: For non-positive sizes or non-square masks
    """
    if isinstance(spec, FromMask):
        res = spec.mask.square_resolution()
    else:
        res = float(spec.res)
    if not res > 0 or not math.isfinite(res):
        raise ConfigurationError(f"Resolution must be a positive number, got {res}")
    return res


def _snap(value: float, origin: float, step: float) -> float:
    return origin + round((value - origin) / step) * step


def snap_extent(extent: Bounds2D, res: float, origin: Tuple[float, float] = (0.0, 0.0)) -> Bounds2D:
    """Grow ``extent`` to whole resolution-grid cells anchored at ``origin``.

    Cells are half-open, so a maximum lying on a grid line pulls in the
    cell above it; cell assignment follows the same floor as
    ``grid_metrics``.
    """
    ox, oy = origin
    return Bounds2D(
        ox + math.floor((extent.min_x - ox) / res) * res,
        oy + math.floor((extent.min_y - oy) / res) * res,
        ox + (math.floor((extent.max_x - ox) / res) + 1) * res,
        oy + (math.floor((extent.max_y - oy) / res) + 1) * res,
    )


def _axis_intervals(
    lo: float,
    hi: float,
    origin: float,
    size: float,
    res: Optional[float],
) -> List[Tuple[float, float]]:
    """Core intervals covering [lo, hi] on a grid of pitch ``size`` anchored at ``origin``."""
    k0 = math.floor((lo - origin) / size + _EPS)
    k1 = max(math.ceil((hi - origin) / size - _EPS), k0 + 1)
    edges = [origin + k * size for k in range(k0, k1 + 1)]
    if res is not None:
        edges = [_snap(e, origin, res) for e in edges]
        edges[0] = min(edges[0], lo)
        edges[-1] = max(edges[-1], hi)

    out: List[Tuple[float, float]] = []
    for a, b in zip(edges[:-1], edges[1:]):
        a, b = max(a, lo), min(b, hi)
        if b > a:
            out.append((a, b))
    if not out:
        # Degenerate extent (e.g. a single file holding one point)
        out.append((lo, hi))
    return out


class Tiler:
    """Generate grid-aligned tiles with a buffer for catalog processing.

    Divides an extent into square tiles of ``tile_size`` laid on a global
    grid anchored at ``origin``. Cores are clipped to the extent; buffers
    are not.

    Attributes:
        extent: Bounding box to partition
        tile: Tile edge length in data units
        buffer: Buffer width around each tile in data units
        resolution: Output resolution the tile edges are snapped to, if any
        origin: Grid origin offset (x, y)
        mask: Optional RasterMask; tiles whose core holds no occupied mask
            cell are dropped
    """

    def __init__(
        self,
        extent: Bounds2D,
        tile_size: float,
        buffer: float,
        *,
        resolution: Optional[float] = None,
        origin: Tuple[float, float] = (0.0, 0.0),
        mask: Optional[RasterMask] = None,
    ) -> None:
        if not tile_size > 0:
            raise ConfigurationError(f"Tile size must be positive, got {tile_size}")
        if buffer < 0:
            raise ConfigurationError(f"Buffer must be >= 0, got {buffer}")
        if resolution is not None and resolution > tile_size:
            raise ConfigurationError(
                f"Resolution {resolution} is larger than the tile size {tile_size}"
            )
        self.extent = extent
        self.tile = float(tile_size)
        self.buffer = float(buffer)
        self.resolution = resolution
        self.origin = (float(origin[0]), float(origin[1]))
        self.mask = mask

    def tiles(self) -> Iterator[Tile]:
        """Generate all tiles covering the extent.

        Tiles are generated row-by-row (y first, then x). Tiles dropped by
        the mask do not consume an index, so indices are always 0..n-1.
        """
        xs = _axis_intervals(self.extent.min_x, self.extent.max_x, self.origin[0], self.tile, self.resolution)
        ys = _axis_intervals(self.extent.min_y, self.extent.max_y, self.origin[1], self.tile, self.resolution)

        index = 0
        for j, (y0, y1) in enumerate(ys):
            for i, (x0, x1) in enumerate(xs):
                inner = Bounds2D(min_x=x0, min_y=y0, max_x=x1, max_y=y1)
                if self.mask is not None and not self.mask.occupied(inner):
                    continue
                yield Tile(index=index, i=i, j=j, inner=inner, outer=inner.expand(self.buffer))
                index += 1


def make_tiles(
    extent: Bounds2D,
    tile_size: float,
    buffer: float,
    mask: Optional[RasterMask] = None,
    *,
    resolution: Optional[float] = None,
    origin: Tuple[float, float] = (0.0, 0.0),
) -> List[Tile]:
    """Ordered list of tiles covering ``extent`` (or its masked part)."""
    return list(
        Tiler(extent, tile_size, buffer, resolution=resolution, origin=origin, mask=mask).tiles()
    )
