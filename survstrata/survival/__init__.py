"""
Survival analysis.

Public API:
    kaplan_meier(cohort) -> KMSolution
    logrank_compare(groups) -> LogRankSolution
    survdiff(time, event, group) -> LogRankSolution
    coxph(cohort, group_labels) -> CoxSolution
    coxph_matrix(time, event, X) -> CoxSolution
"""

from survstrata.survival.solvers import (
    coxph,
    coxph_matrix,
    kaplan_meier,
    logrank_compare,
    survdiff,
)
from survstrata.survival.solution import CoxSolution, KMSolution, LogRankSolution

__all__ = [
    "coxph",
    "coxph_matrix",
    "kaplan_meier",
    "logrank_compare",
    "survdiff",
    "CoxSolution",
    "KMSolution",
    "LogRankSolution",
]
