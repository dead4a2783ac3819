"""
Multiple testing correction for batch result tables, matching R's p.adjust().

Methods: holm, hochberg, bonferroni, BH, BY, fdr, none.

Rows whose statistic is unavailable carry NaN p-values; they are left as NaN
and do not count towards the number of tests.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from survstrata.core.exceptions import ValidationError

VALID_METHODS = ("holm", "hochberg", "bonferroni", "BH", "BY", "fdr", "none")


def p_adjust(
    p: ArrayLike,
    method: str = "holm",
    n: int | None = None,
) -> NDArray[np.floating]:
    """
    Adjust p-values for multiple comparisons. Matches R p.adjust().

    Parameters
    ----------
    p : array-like
        Vector of p-values; NaN marks an unavailable test.
    method : str
        One of "holm" (default), "hochberg", "bonferroni", "BH",
        "BY", "fdr" (alias for BH), "none".
    n : int or None
        Number of comparisons. Default: number of non-NaN p-values.

    Returns
    -------
    ndarray
        Adjusted p-values, same length as input, clipped to [0, 1].
    """
    if method not in VALID_METHODS:
        raise ValidationError(
            f"method must be one of {VALID_METHODS}, got {method!r}"
        )

    p_arr = np.asarray(p, dtype=np.float64).ravel()
    result = p_arr.copy()

    nan_mask = np.isnan(p_arr)
    valid_idx = np.flatnonzero(~nan_mask)
    if len(valid_idx) == 0 or method == "none":
        return result

    pv = p_arr[valid_idx]
    if n is None:
        n_tests = len(pv)
    elif n < len(pv):
        raise ValidationError(
            f"n ({n}) must be >= number of p-values ({len(pv)})"
        )
    else:
        n_tests = n

    if method == "bonferroni":
        adjusted = pv * n_tests
    elif method == "holm":
        adjusted = _holm(pv, n_tests)
    elif method == "hochberg":
        adjusted = _hochberg(pv, n_tests)
    elif method in ("BH", "fdr"):
        adjusted = _step_up(pv, n_tests, 1.0)
    else:
        # BY: c(m) = sum(1/i for i in 1..n)
        cm = np.sum(1.0 / np.arange(1, n_tests + 1, dtype=np.float64))
        adjusted = _step_up(pv, n_tests, cm)

    result[valid_idx] = np.clip(adjusted, 0.0, 1.0)
    return result


def _holm(pv: NDArray, n: int) -> NDArray:
    """Holm's step-down method (controls FWER, no assumptions)."""
    lp = len(pv)
    order = np.argsort(pv, kind="stable")

    # Multiply by (n - rank + 1) where rank is 1-based
    adjusted_sorted = pv[order] * np.arange(n, n - lp, -1, dtype=np.float64)
    adjusted_sorted = np.maximum.accumulate(adjusted_sorted)

    result = np.empty(lp, dtype=np.float64)
    result[order] = adjusted_sorted
    return result


def _hochberg(pv: NDArray, n: int) -> NDArray:
    """Hochberg's step-up method (controls FWER, needs independence/PRDS)."""
    lp = len(pv)
    order = np.argsort(pv, kind="stable")[::-1]  # descending

    multipliers = np.arange(n - lp + 1, n + 1, dtype=np.float64)
    adjusted_sorted = np.minimum.accumulate(pv[order] * multipliers)

    result = np.empty(lp, dtype=np.float64)
    result[order] = adjusted_sorted
    return result


def _step_up(pv: NDArray, n: int, scale: float) -> NDArray:
    """Benjamini-Hochberg (scale=1) and Benjamini-Yekutieli step-up."""
    lp = len(pv)
    order = np.argsort(pv, kind="stable")[::-1]  # descending

    ranks = np.arange(lp, 0, -1, dtype=np.float64)
    adjusted_sorted = np.minimum.accumulate(pv[order] * scale * n / ranks)

    result = np.empty(lp, dtype=np.float64)
    result[order] = adjusted_sorted
    return result
