"""
Generic result container for all survstrata computations.

The Result class provides a standardized envelope that all estimator results
use. Estimators define their own frozen parameter payloads and wrap them here
together with method metadata, timing and non-fatal warnings.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (method, iterations, ties)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) so results can be shared between threads
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for survival computations.

    Type Parameters:
        P: The estimator-specific parameter payload type

    Attributes:
        params: Estimator parameters (curve, test statistic, coefficients)
        info: Structured metadata (method, convergence, ties)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the kernel that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=km_params,
        ...     info={'method': 'Kaplan-Meier'},
        ...     timing={'total_seconds': 0.001},
        ...     backend_name='cpu_km'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
