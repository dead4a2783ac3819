"""
Batch comparison of groups.

Public API:
    compare_all(cohort, labels) -> tuple[ComparisonResult, ...]
    run_single(cohort, covariate) -> UnitResult
    run_batch(cohort, primary, candidates) -> BatchSolution
    run_subsets(cohort, covariate, subsets) -> BatchSolution
    exclude_covariates(cohort, primary, candidates) -> (kept, skipped)
    p_adjust(p, method) -> ndarray
"""

from survstrata.batch._exclusion import exclude_covariates
from survstrata.batch._p_adjust import p_adjust
from survstrata.batch.orchestrator import (
    WorkItem,
    apply_subset,
    iter_work_items,
    run_batch,
    run_single,
    run_subsets,
)
from survstrata.batch.pairwise import ComparisonResult, compare_all
from survstrata.batch.solution import BatchSolution, SkipRecord, UnitResult

__all__ = [
    "BatchSolution",
    "ComparisonResult",
    "SkipRecord",
    "UnitResult",
    "WorkItem",
    "apply_subset",
    "compare_all",
    "exclude_covariates",
    "iter_work_items",
    "p_adjust",
    "run_batch",
    "run_single",
    "run_subsets",
]
