"""
Tests for the survstrata exception hierarchy.

Validates:
    - Inheritance chain (all errors catchable via SurvStrataError)
    - Diagnostic attributes on the structured errors
    - DegenerateGroup is a warning category, not an error
"""

import warnings

import pytest

from survstrata.core.exceptions import (
    DegenerateGroup,
    DimensionError,
    DuplicateCovariate,
    EmptyCohort,
    IncompleteStrata,
    InsufficientGroups,
    InvalidCovariate,
    NonConvergence,
    NumericalError,
    SeparationError,
    SingularMatrixError,
    SurvStrataError,
    SurvStrataWarning,
    UnknownCovariate,
    ValidationError,
)


class TestInheritance:
    """Every error is catchable via SurvStrataError."""

    @pytest.mark.parametrize("cls", [
        DimensionError, InvalidCovariate, EmptyCohort, InsufficientGroups,
        UnknownCovariate, DuplicateCovariate, IncompleteStrata,
    ])
    def test_validation_errors(self, cls):
        assert issubclass(cls, ValidationError)
        assert issubclass(cls, SurvStrataError)

    @pytest.mark.parametrize("cls", [
        SingularMatrixError, NonConvergence, SeparationError,
    ])
    def test_numerical_errors(self, cls):
        assert issubclass(cls, NumericalError)
        assert issubclass(cls, SurvStrataError)

    def test_separation_is_not_validation(self):
        assert not issubclass(SeparationError, ValidationError)

    def test_degenerate_group_is_warning(self):
        assert issubclass(DegenerateGroup, SurvStrataWarning)
        assert issubclass(DegenerateGroup, UserWarning)
        assert not issubclass(DegenerateGroup, SurvStrataError)

    def test_degenerate_group_can_be_filtered(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            warnings.warn("no events", DegenerateGroup)
        assert len(caught) == 1
        assert caught[0].category is DegenerateGroup


class TestAttributes:
    """Structured errors carry diagnostics."""

    def test_invalid_covariate(self):
        err = InvalidCovariate("constant", covariate="GENE", n_distinct=1)
        assert err.covariate == "GENE"
        assert err.n_distinct == 1
        assert str(err) == "constant"

    def test_invalid_covariate_defaults(self):
        err = InvalidCovariate("bad")
        assert err.covariate is None
        assert err.n_distinct is None

    def test_insufficient_groups(self):
        err = InsufficientGroups("one group", n_groups=1)
        assert err.n_groups == 1

    def test_non_convergence(self):
        err = NonConvergence("stuck", iterations=20, final_change=0.5,
                             reason="max_iterations", threshold=1e-9)
        assert err.iterations == 20
        assert err.final_change == 0.5
        assert err.reason == "max_iterations"
        assert err.threshold == 1e-9

    def test_separation_error(self):
        err = SeparationError("no events", zero_event_levels=["Low"])
        assert err.zero_event_levels == ("Low",)

    def test_duplicate_covariate(self):
        err = DuplicateCovariate("copy", covariate="DUP",
                                 duplicate_of="PRIMARY", correlation=1.0)
        assert err.duplicate_of == "PRIMARY"
        assert err.correlation == 1.0

    def test_incomplete_strata(self):
        err = IncompleteStrata("missing", missing_levels=["A=High, B=Low"])
        assert err.missing_levels == ("A=High, B=Low",)

    def test_class_name_is_reason(self):
        """Batch skip reasons are the error class names."""
        assert type(InvalidCovariate("x")).__name__ == "InvalidCovariate"
