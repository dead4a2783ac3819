"""
Core infrastructure for survstrata.

This module provides shared abstractions and utilities used by all
subpackages (cohort, stratify, survival, batch).

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception and warning hierarchy
    validation: Input validators
    config: AnalysisConfig
    logging: Package logger factory
    compute: Timing utilities
"""

from survstrata.core.result import Result
from survstrata.core.config import AnalysisConfig, DEFAULT_CONFIG
from survstrata.core.exceptions import (
    SurvStrataError,
    ValidationError,
    DimensionError,
    InvalidCovariate,
    EmptyCohort,
    InsufficientGroups,
    UnknownCovariate,
    DuplicateCovariate,
    IncompleteStrata,
    NumericalError,
    SingularMatrixError,
    NonConvergence,
    SeparationError,
    SurvStrataWarning,
    DegenerateGroup,
)

__all__ = [
    # Result
    "Result",
    # Config
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    # Exceptions
    "SurvStrataError",
    "ValidationError",
    "DimensionError",
    "InvalidCovariate",
    "EmptyCohort",
    "InsufficientGroups",
    "UnknownCovariate",
    "DuplicateCovariate",
    "IncompleteStrata",
    "NumericalError",
    "SingularMatrixError",
    "NonConvergence",
    "SeparationError",
    # Warnings
    "SurvStrataWarning",
    "DegenerateGroup",
]
