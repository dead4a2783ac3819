"""
Exception hierarchy for survstrata.

All exceptions inherit from SurvStrataError to allow catching any
library-specific error. The batch layer relies on this: only SurvStrataError
subclasses are converted into skip records, everything else propagates.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class SurvStrataError(Exception):
    """Base exception for all survstrata errors."""
    pass


class ValidationError(SurvStrataError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.
    """
    pass


class InvalidCovariate(ValidationError):
    """
    Covariate cannot be split into groups.

    Raised by the stratifier when a covariate has fewer than two distinct
    values among eligible subjects, has the wrong kind for the requested
    rule, or produces an empty side.

    Attributes:
        covariate: Name of the offending covariate
        n_distinct: Number of distinct non-missing values observed
    """

    def __init__(
        self,
        message: str,
        covariate: str | None = None,
        n_distinct: int | None = None,
    ):
        super().__init__(message)
        self.covariate = covariate
        self.n_distinct = n_distinct


class EmptyCohort(ValidationError):
    """Cohort (or cohort subset) has no eligible subjects."""
    pass


class InsufficientGroups(ValidationError):
    """
    Fewer than two non-empty groups were supplied to a comparison.

    Attributes:
        n_groups: Number of non-empty groups found
    """

    def __init__(self, message: str, n_groups: int | None = None):
        super().__init__(message)
        self.n_groups = n_groups


class UnknownCovariate(ValidationError):
    """Covariate name is not present in the cohort."""

    def __init__(self, message: str, covariate: str | None = None):
        super().__init__(message)
        self.covariate = covariate


class DuplicateCovariate(ValidationError):
    """
    Candidate covariate repeats the primary or an earlier candidate.

    Attributes:
        covariate: The excluded candidate
        duplicate_of: Covariate it duplicates
        correlation: |Pearson r| with the primary, when that was the cause
    """

    def __init__(
        self,
        message: str,
        covariate: str | None = None,
        duplicate_of: str | None = None,
        correlation: float | None = None,
    ):
        super().__init__(message)
        self.covariate = covariate
        self.duplicate_of = duplicate_of
        self.correlation = correlation


class IncompleteStrata(ValidationError):
    """
    Composite grouping is missing some combinations of component levels.

    Attributes:
        missing_levels: Composite labels with no subjects
    """

    def __init__(self, message: str, missing_levels: tuple = ()):
        super().__init__(message)
        self.missing_levels = tuple(missing_levels)


class NumericalError(SurvStrataError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        condition_number: Estimated condition number, if available
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        condition_number: float | None = None,
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.condition_number = condition_number


class NonConvergence(NumericalError):
    """
    Iterative algorithm failed to converge.

    Raised when Newton-Raphson fails to meet the convergence criterion
    within the maximum number of iterations.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final max absolute coefficient change
        reason: Why convergence failed ('max_iterations',
            'singular_information', 'monotone_likelihood')
        threshold: The convergence threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold


class SeparationError(NumericalError):
    """
    Perfect separation: at least one group has zero events.

    The partial likelihood is then monotone in the group coefficient and
    has no finite maximum.

    Attributes:
        zero_event_levels: Group labels with no observed events
    """

    def __init__(self, message: str, zero_event_levels: tuple = ()):
        super().__init__(message)
        self.zero_event_levels = tuple(zero_event_levels)


class SurvStrataWarning(UserWarning):
    """Base warning category for survstrata."""
    pass


class DegenerateGroup(SurvStrataWarning):
    """
    A compared group has zero observed events.

    The log-rank statistic is still computable, but the result may be
    unstable and should be reported as low-confidence.
    """
    pass
