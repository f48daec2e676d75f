"""
Output size guard.

Estimates the size of a run's in-memory output before any tile is dispatched
and decides whether to proceed, write tiles to disk instead, or abort. The
estimate is a coarse heuristic (catalog area / res^2 cells times a fixed
number of bytes per cell), not an accounting of the real output schema.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Dict

from ..utils.logging import setup_logger

logger = setup_logger(__name__)


class MemoryDecision(str, Enum):
    PROCEED = "proceed"
    SPILL = "spill"
    ABORT = "abort"


# policy(estimated_bytes, threshold_bytes) -> decision
MemoryPolicy = Callable[[float, float], MemoryDecision]


def format_size(nbytes: float) -> str:
    """Human readable byte count, e.g. ``1.5 Gb``."""
    if not math.isfinite(nbytes):
        return str(nbytes)
    units = ["bytes", "Kb", "Mb", "Gb", "Tb", "Pb"]
    value = float(nbytes)
    for unit in units:
        if abs(value) < 1024 or unit == units[-1]:
            return f"{value:.0f} {unit}" if unit == "bytes" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} Pb"


def estimate_output_size(area: float, res: float, bytes_per_cell: int = 24) -> float:
    """
    Approximate size in bytes of a gridded output covering ``area``.

    Args:
        area: Surface to cover, in squared data units
        res: Output cell size
        bytes_per_cell: Bytes held per output cell (default 3 metrics x 8 bytes)

    Returns:
        Estimated number of bytes
    """
    if res <= 0:
        raise ValueError(f"Resolution must be positive, got {res}")
    n_cells = area / (res * res)
    return n_cells * bytes_per_cell


def abort_policy(nbytes: float, threshold: float) -> MemoryDecision:
    return MemoryDecision.ABORT


def proceed_policy(nbytes: float, threshold: float) -> MemoryDecision:
    return MemoryDecision.PROCEED


def spill_policy(nbytes: float, threshold: float) -> MemoryDecision:
    return MemoryDecision.SPILL


def interactive_policy(nbytes: float, threshold: float) -> MemoryDecision:
    """Ask on the terminal; anything but a valid choice asks again.

    With no terminal to answer (closed or redirected stdin) the run aborts.
    """
    choices = {
        "1": MemoryDecision.PROCEED,
        "2": MemoryDecision.SPILL,
        "3": MemoryDecision.ABORT,
    }
    print(
        f"The process is expected to return approximately {format_size(nbytes)}. "
        f"It might be too much.\n"
        "1: Proceed anyway\n"
        "2: Store the results on my disk and return a virtual raster mosaic\n"
        "3: Abort, let me change the configuration"
    )
    while True:
        try:
            answer = input("Selection: ").strip()
        except EOFError:
            print("\nNo answer on standard input, aborting")
            return MemoryDecision.ABORT
        if answer in choices:
            return choices[answer]
        print("Please enter 1, 2 or 3")


POLICIES: Dict[str, MemoryPolicy] = {
    "abort": abort_policy,
    "proceed": proceed_policy,
    "spill": spill_policy,
    "ask": interactive_policy,
}


def policy_from_name(name: str) -> MemoryPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown memory policy '{name}', expected one of {sorted(POLICIES)}") from None


def decide(
    nbytes: float,
    warn_threshold: float,
    spill_requested: bool,
    policy: MemoryPolicy = abort_policy,
) -> MemoryDecision:
    """
    Decide how to run given the estimated output size.

    - Within the threshold (or with an infinite threshold): PROCEED, or SPILL
      when spilling was already requested.
    - Over the threshold with spilling already requested: SPILL, no question.
    - Otherwise the policy chooses.

    Args:
        nbytes: Estimated output size in bytes
        warn_threshold: Threshold in bytes; ``math.inf`` disables the guard
        spill_requested: Whether output is already configured to go to disk
        policy: Callback consulted when a choice is needed

    Returns:
        MemoryDecision
    """
    if math.isinf(warn_threshold) or nbytes <= warn_threshold:
        return MemoryDecision.SPILL if spill_requested else MemoryDecision.PROCEED

    if spill_requested:
        logger.info(
            f"Estimated output {format_size(nbytes)} exceeds {format_size(warn_threshold)}; "
            "results already go to disk"
        )
        return MemoryDecision.SPILL

    logger.warning(
        f"Estimated output {format_size(nbytes)} exceeds the memory warning threshold "
        f"of {format_size(warn_threshold)}"
    )
    decision = MemoryDecision(policy(nbytes, warn_threshold))
    logger.info(f"Memory policy decision: {decision.value}")
    return decision
