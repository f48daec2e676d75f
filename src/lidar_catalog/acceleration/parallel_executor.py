"""
Dispatch of catalog tiles to a local process pool.

TileParallelExecutor runs one task per tile, restores submission order and
collects per-tile failures instead of stopping at the first one.
"""

from __future__ import annotations

import logging
import time
import traceback
from multiprocessing import Pool, cpu_count
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..utils.errors import TileProcessingError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _worker_wrapper(args: Tuple[int, Any, Callable, Dict[str, Any]]) -> Tuple[int, Any, Optional[str]]:
    """
    Run one tile and turn an exception into an error message.

    Module level so the pool can pickle it.

    Args:
        args: Tuple of (tile_index, tile, worker_fn, worker_kwargs)

    Returns:
        Tuple of (tile_index, result, error_message)
    """
    idx, tile, worker_fn, worker_kwargs = args
    try:
        result = worker_fn(tile, **worker_kwargs)
        return (idx, result, None)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.error(f"Worker error on tile {idx}: {error_msg}\n{traceback.format_exc()}")
        return (idx, None, error_msg)


class TileParallelExecutor:
    """
    Bounded worker pool over catalog tiles.

    Submits one task per tile and collects results in
    input order regardless of completion order. A failing tile does not stop
    its siblings; once every tile has finished, any failure is raised as a
    TileProcessingError naming the failed tiles.

    Example:
        executor = TileParallelExecutor(n_workers=4)
        results = executor.map_tiles(
            tiles=tile_list,
            worker_fn=process_grid_tile,
            worker_kwargs={'reader': reader, 'grid_func': zmean, 'res': 2.0}
        )
    """

    def __init__(self, n_workers: Optional[int] = None, *, progress: bool = False):
        """
        Create the executor; no process is started until tiles are mapped.

        Args:
            n_workers: Number of worker processes. If None, uses every
                available core. Minimum is 1. Capped to the tile count when
                tiles are mapped.
            progress: If True, log progress after every completed tile
                instead of every tenth.
        """
        if n_workers is None:
            n_workers = cpu_count()
        else:
            n_workers = max(1, int(n_workers))

        self.n_workers = n_workers
        self.progress = progress

        logger.info(
            f"Initialized TileParallelExecutor with {self.n_workers} workers "
            f"(total CPUs: {cpu_count()})"
        )

    def effective_workers(self, n_tiles: int) -> int:
        """Workers actually started for ``n_tiles`` tiles."""
        return max(1, min(self.n_workers, n_tiles))

    def _report(self, completed: int, n_tiles: int, n_failed: int, start_time: float,
                progress_callback: Optional[ProgressCallback]) -> None:
        if progress_callback:
            progress_callback(completed, n_tiles)

        # Every tile at INFO when progress is on; otherwise a DEBUG line every 10 tiles
        if self.progress:
            level = logging.INFO
        elif completed % 10 == 0 or completed == n_tiles:
            level = logging.DEBUG
        else:
            return

        elapsed = max(time.time() - start_time, 1e-9)
        rate = completed / elapsed
        eta = (n_tiles - completed) / rate if rate > 0 else 0
        logger.log(
            level,
            f"Progress: {completed}/{n_tiles} tiles "
            f"({100 * completed / n_tiles:.1f}%) - "
            f"Rate: {rate:.2f} tiles/s - ETA: {eta:.1f}s - "
            f"Failed: {n_failed}"
        )

    def map_tiles(
        self,
        tiles: Sequence[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[Any]:
        """
        Apply ``worker_fn`` to every tile.

        Args:
            tiles: Tiles to process (typically Tile objects)
            worker_fn: Function to apply to each tile. Must be picklable and
                have signature: worker_fn(tile, **worker_kwargs) -> result
            worker_kwargs: Fixed, read-only keyword arguments passed to each call
            progress_callback: Optional callback called after each tile
                completes. Signature: callback(completed_count, total_count).
                Counts increase monotonically.

        Returns:
            List of results in the same order as input tiles

        Raises:
            TileProcessingError: If any tile failed, after all tiles finished
        """
        n_tiles = len(tiles)

        if n_tiles == 0:
            logger.warning("No tiles to process")
            return []

        n_workers = self.effective_workers(n_tiles)
        logger.info(f"Processing {n_tiles} tiles with {n_workers} workers")
        start_time = time.time()

        if n_workers == 1:
            logger.info("Using sequential processing (1 worker or 1 tile)")
            outcomes = self._sequential_map(tiles, worker_fn, worker_kwargs, progress_callback, start_time)
        else:
            outcomes = self._parallel_map(tiles, worker_fn, worker_kwargs, progress_callback, start_time, n_workers)

        results: List[Any] = [None] * n_tiles
        errors: Dict[int, str] = {}
        for idx, result, error in outcomes:
            if error is not None:
                errors[idx] = error
            else:
                results[idx] = result

        total_time = max(time.time() - start_time, 1e-9)
        if errors:
            logger.error(f"{len(errors)} tiles failed out of {n_tiles}")
            for idx, error in list(sorted(errors.items()))[:5]:
                logger.error(f"  Tile {idx}: {error}")
            if len(errors) > 5:
                logger.error(f"  ... and {len(errors) - 5} more errors")
            raise TileProcessingError(errors, n_tiles)

        logger.info(
            f"Processing complete: {n_tiles} tiles in {total_time:.1f}s "
            f"({n_tiles / total_time:.2f} tiles/s)"
        )
        return results

    def _sequential_map(
        self,
        tiles: Sequence[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[ProgressCallback],
        start_time: float,
    ) -> List[Tuple[int, Any, Optional[str]]]:
        """Run tiles in this process, still isolating per-tile failures."""
        n_tiles = len(tiles)
        outcomes = []
        n_failed = 0
        for i, tile in enumerate(tiles):
            outcome = _worker_wrapper((i, tile, worker_fn, worker_kwargs))
            if outcome[2] is not None:
                n_failed += 1
            outcomes.append(outcome)
            self._report(i + 1, n_tiles, n_failed, start_time, progress_callback)
        return outcomes

    def _parallel_map(
        self,
        tiles: Sequence[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[ProgressCallback],
        start_time: float,
        n_workers: int,
    ) -> List[Tuple[int, Any, Optional[str]]]:
        """
        Execute parallel mapping using multiprocessing.Pool.

        Uses imap_unordered for responsiveness; the tile index travels with
        each outcome so results can be reordered afterwards.
        """
        n_tiles = len(tiles)
        worker_args = [(i, tile, worker_fn, worker_kwargs) for i, tile in enumerate(tiles)]

        outcomes = []
        n_failed = 0
        with Pool(processes=n_workers) as pool:
            for completed, outcome in enumerate(pool.imap_unordered(_worker_wrapper, worker_args), start=1):
                if outcome[2] is not None:
                    n_failed += 1
                    logger.error(f"Tile {outcome[0]} failed: {outcome[2]}")
                outcomes.append(outcome)
                self._report(completed, n_tiles, n_failed, start_time, progress_callback)

        return outcomes
