"""
Covariate exclusion rule applied before batch iteration.

Candidates are dropped (with a SkipRecord) when they are unknown to the
cohort, repeat the primary or an earlier candidate, or are numerically a
near-copy of the primary covariate. Constant candidates are kept here: the
stratifier rejects them with InvalidCovariate.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from survstrata.batch.solution import SkipRecord
from survstrata.cohort.design import CovariateKind, SubjectCohort
from survstrata.core.exceptions import DuplicateCovariate, UnknownCovariate
from survstrata.core.logging import get_logger

logger = get_logger(__name__)


def _abs_correlation(x: np.ndarray, y: np.ndarray) -> float | None:
    """|Pearson r| on jointly observed entries, None if undefined."""
    shared = ~(np.isnan(x) | np.isnan(y))
    if np.sum(shared) < 3:
        return None
    xs, ys = x[shared], y[shared]
    if np.ptp(xs) == 0 or np.ptp(ys) == 0:
        return None
    return float(abs(np.corrcoef(xs, ys)[0, 1]))


def _check_candidate(
    cohort: SubjectCohort,
    primary: str,
    name: str,
    seen: set[str],
    threshold: float,
) -> None:
    if not cohort.has_covariate(name):
        raise UnknownCovariate(f"cohort has no covariate {name!r}", covariate=name)
    if name == primary:
        raise DuplicateCovariate(
            f"{name!r} is the primary covariate",
            covariate=name, duplicate_of=primary,
        )
    if name in seen:
        raise DuplicateCovariate(
            f"{name!r} is listed more than once",
            covariate=name, duplicate_of=name,
        )

    if (cohort.has_covariate(primary)
            and cohort.kind(primary) is CovariateKind.NUMERIC
            and cohort.kind(name) is CovariateKind.NUMERIC):
        r = _abs_correlation(cohort.covariate(primary), cohort.covariate(name))
        if r is not None and r >= threshold:
            raise DuplicateCovariate(
                f"{name!r} duplicates {primary!r} (|r| = {r:.6f} >= "
                f"{threshold})",
                covariate=name, duplicate_of=primary, correlation=r,
            )


def exclude_covariates(
    cohort: SubjectCohort,
    primary: str,
    candidates: Iterable[str],
    *,
    threshold: float = 0.999,
) -> tuple[tuple[str, ...], tuple[SkipRecord, ...]]:
    """Split candidates into kept names and skip records.

    Parameters
    ----------
    cohort : SubjectCohort
    primary : str
        Covariate every candidate is crossed with.
    candidates : iterable of str
    threshold : float
        |Pearson r| with the primary at or above which a numeric candidate
        counts as a duplicate.

    Returns
    -------
    (kept, skipped)
        Kept names in input order, and one SkipRecord per excluded name.
    """
    kept: list[str] = []
    skipped: list[SkipRecord] = []
    seen: set[str] = set()

    for name in candidates:
        try:
            _check_candidate(cohort, primary, name, seen, threshold)
        except (UnknownCovariate, DuplicateCovariate) as e:
            logger.info("Excluding covariate %s: %s", name, e)
            skipped.append(SkipRecord.from_error(name, e))
            continue
        kept.append(name)
        seen.add(name)

    return tuple(kept), tuple(skipped)
