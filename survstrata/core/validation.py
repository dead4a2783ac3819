"""
Input validation utilities for survstrata.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except np.asarray on array-likes)
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from survstrata.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a floating numpy array.

    Args:
        array: Input to validate
        name: Parameter name for error messages

    Returns:
        numpy.ndarray with floating dtype

    Raises:
        ValidationError: If input cannot be converted to numeric array
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        try:
            result = result.astype(np.float64)
        except (ValueError, TypeError) as e:
            raise ValidationError(
                f"{name}: converted to object dtype, indicating mixed types "
                f"or non-numeric data"
            ) from e

    if result.dtype == bool:
        result = result.astype(np.float64)

    if not np.issubdtype(result.dtype, np.number):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    if not np.issubdtype(result.dtype, np.floating):
        result = result.astype(np.float64)

    return result


def check_1d(array: NDArray, name: str) -> None:
    """
    Verify array is 1-dimensional.

    Raises:
        DimensionError: If array is not 1D
    """
    if array.ndim != 1:
        raise DimensionError(
            f"{name}: expected 1D array, got {array.ndim}D with shape {array.shape}"
        )


def check_consistent_length(
    *arrays: NDArray,
    names: tuple[str, ...]
) -> None:
    """
    Verify all arrays have the same length (first dimension).

    Raises:
        ValueError: If number of names doesn't match number of arrays
        DimensionError: If arrays have inconsistent lengths
    """
    if len(arrays) != len(names):
        raise ValueError(
            f"Number of arrays ({len(arrays)}) must match number of names ({len(names)})"
        )

    if len(arrays) < 2:
        return

    lengths = [len(arr) for arr in arrays]
    if len(set(lengths)) > 1:
        details = ", ".join(f"{name}={length}" for name, length in zip(names, lengths))
        raise DimensionError(f"Inconsistent lengths: {details}")


def check_event_indicator(event: NDArray[np.floating[Any]], name: str = "event") -> None:
    """
    Verify a (possibly NaN-containing) event array holds only 0/1.

    NaN entries are allowed here; callers decide whether they make a row
    ineligible.

    Raises:
        ValidationError: If any non-missing value is not 0 or 1
    """
    observed = event[~np.isnan(event)]
    unique_events = np.unique(observed)
    if not np.all(np.isin(unique_events, [0.0, 1.0])):
        raise ValidationError(
            f"{name} must contain only 0 and 1, "
            f"got unique values: {unique_events}"
        )


def check_unique(values: NDArray, name: str) -> None:
    """
    Verify all entries are distinct.

    Raises:
        ValidationError: If duplicates exist (first few are listed)
    """
    seen: set = set()
    dupes: list = []
    for v in values:
        if v in seen:
            dupes.append(v)
        seen.add(v)
    if dupes:
        raise ValidationError(
            f"{name}: contains duplicate values, e.g. {dupes[:5]}"
        )


def check_probability(value: float, name: str, *, inclusive: bool = False) -> None:
    """
    Verify value lies in (0, 1), or [0, 1] when inclusive.

    Raises:
        ValidationError: If value is out of range
    """
    if inclusive:
        ok = 0.0 <= value <= 1.0
        bounds = "[0, 1]"
    else:
        ok = 0.0 < value < 1.0
        bounds = "(0, 1)"
    if not ok:
        raise ValidationError(f"{name} must be in {bounds}, got {value}")
