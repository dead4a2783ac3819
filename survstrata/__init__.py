"""
survstrata: stratified survival analysis for Python.

Split a cohort into expression groups, estimate Kaplan-Meier curves, and
test group separation with the log-rank test and Cox proportional hazards,
across many covariates and cohort subsets at once.

Submodules:
    cohort: Immutable subject cohorts
    stratify: Threshold and cross-product group labelling
    survival: Kaplan-Meier, log-rank test, Cox PH
    batch: Pairwise comparisons and batch orchestration
"""

__version__ = "0.1.0"

from survstrata import batch, cohort, stratify, survival
from survstrata.batch import (
    BatchSolution,
    ComparisonResult,
    compare_all,
    run_batch,
    run_single,
    run_subsets,
)
from survstrata.cohort import SubjectCohort, SubjectRecord
from survstrata.core import AnalysisConfig
from survstrata.stratify import cross_product, threshold_split
from survstrata.survival import coxph, kaplan_meier, logrank_compare, survdiff

__all__ = [
    "__version__",
    "batch",
    "cohort",
    "stratify",
    "survival",
    "AnalysisConfig",
    "BatchSolution",
    "ComparisonResult",
    "SubjectCohort",
    "SubjectRecord",
    "compare_all",
    "coxph",
    "cross_product",
    "kaplan_meier",
    "logrank_compare",
    "run_batch",
    "run_single",
    "run_subsets",
    "survdiff",
    "threshold_split",
]
