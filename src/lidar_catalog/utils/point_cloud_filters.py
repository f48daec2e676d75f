"""
Point filters for catalog reads

Shared filters applied by the catalog reader while streaming points:
classification masks and caller-supplied record predicates.
"""

from typing import Callable, List, Optional, Union

import numpy as np
import pandas as pd

# A record filter is either a pandas query expression (e.g. "Z > 5 and intensity < 200")
# or a callable returning a boolean mask for a points DataFrame.
RecordFilter = Union[str, Callable[[pd.DataFrame], "np.ndarray | pd.Series"]]


def create_classification_mask(
    classification: np.ndarray,
    ground_only: bool = False,
    classification_filter: Optional[List[int]] = None,
) -> np.ndarray:
    """Boolean mask of the points the reader keeps, by ASPRS class code.

    An explicit ``classification_filter`` wins over ``ground_only``; with
    neither set every point is kept.

    Example:
        >>> create_classification_mask(np.array([1, 2, 6, 2]), ground_only=True)
        array([False,  True, False,  True])
    """
    if classification_filter is not None:
        return np.isin(classification, np.asarray(classification_filter))

    if ground_only:
        return classification == 2

    return np.ones(len(classification), dtype=bool)


def apply_record_filter(points: pd.DataFrame, record_filter: Optional[RecordFilter]) -> pd.DataFrame:
    """Keep the rows of ``points`` accepted by ``record_filter``.

    Args:
        points: Points table with at least X, Y, Z columns
        record_filter: Query expression, boolean-mask callable, or None

    Returns:
        Filtered DataFrame (the input itself when no filter is given)
    """
    if record_filter is None or points.empty:
        return points

    if isinstance(record_filter, str):
        return points.query(record_filter)

    mask = np.asarray(record_filter(points), dtype=bool)
    if mask.shape != (len(points),):
        raise ValueError(
            f"Record filter returned mask of shape {mask.shape}, expected ({len(points)},)"
        )
    return points.loc[mask]
