"""
Subject cohorts.

Public API:
    SubjectCohort.from_arrays(ids, time, event, covariates) -> SubjectCohort
    SubjectCohort.from_records(records) -> SubjectCohort
    SubjectCohort.from_dataframe(df) -> SubjectCohort
"""

from survstrata.cohort.design import (
    CovariateColumn,
    CovariateKind,
    SubjectCohort,
    SubjectRecord,
)

__all__ = [
    "CovariateColumn",
    "CovariateKind",
    "SubjectCohort",
    "SubjectRecord",
]
