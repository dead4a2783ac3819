"""
Analysis configuration.

A single frozen dataclass collects every knob the pipeline exposes to
callers: the stratification threshold rule, the viability policy for
pairwise comparisons, Newton-Raphson settings for the Cox fit, the covariate
exclusion rule, and the degree of fan-out parallelism.

Public functions accept a config and, where it makes sense, plain keyword
overrides that take precedence over it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace as _dc_replace

from survstrata.core.exceptions import ValidationError
from survstrata.core.validation import check_probability

VALID_TIES = ("breslow", "efron")
VALID_CONF_TYPES = ("log", "plain", "log-log")


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Immutable analysis settings.

    Attributes:
        threshold_quantile: Quantile of the available values used as the
            High/Low cut point. 0.5 is the median split.
        high_label: Label for values >= cut point (ties go High).
        low_label: Label for values < cut point.
        min_events: A pairwise comparison is reliable only if at least one
            arm has this many events.
        cox_tol: Newton-Raphson tolerance on max |beta_new - beta|.
        cox_max_iter: Newton-Raphson iteration cap.
        ties: Tied event handling for the Cox fit, "breslow" or "efron".
        conf_level: Confidence level for KM bands and hazard-ratio CIs.
        conf_type: KM confidence band transform.
        rho: G-rho weight for the log-rank test (0 = classic log-rank).
        require_full_cross: If True a composite grouping must contain every
            combination of the two component levels to be analysed.
        duplicate_threshold: |r| at or above which a numeric candidate is
            treated as a duplicate of the primary covariate.
        n_jobs: Worker threads for the batch fan-out (1 = sequential).
    """
    threshold_quantile: float = 0.5
    high_label: str = "High"
    low_label: str = "Low"
    min_events: int = 1
    cox_tol: float = 1e-9
    cox_max_iter: int = 20
    ties: str = "breslow"
    conf_level: float = 0.95
    conf_type: str = "log"
    rho: float = 0.0
    require_full_cross: bool = True
    duplicate_threshold: float = 0.999
    n_jobs: int = 1

    def __post_init__(self) -> None:
        check_probability(self.threshold_quantile, "threshold_quantile")
        check_probability(self.conf_level, "conf_level")
        check_probability(self.duplicate_threshold, "duplicate_threshold",
                          inclusive=True)

        if self.high_label == self.low_label:
            raise ValidationError(
                f"high_label and low_label must differ, both are "
                f"{self.high_label!r}"
            )
        if self.min_events < 0:
            raise ValidationError(
                f"min_events must be >= 0, got {self.min_events}"
            )
        if self.cox_tol <= 0:
            raise ValidationError(f"cox_tol must be positive, got {self.cox_tol}")
        if self.cox_max_iter < 1:
            raise ValidationError(
                f"cox_max_iter must be >= 1, got {self.cox_max_iter}"
            )
        if self.ties not in VALID_TIES:
            raise ValidationError(
                f"ties must be one of {VALID_TIES}, got {self.ties!r}"
            )
        if self.conf_type not in VALID_CONF_TYPES:
            raise ValidationError(
                f"conf_type must be one of {VALID_CONF_TYPES}, "
                f"got {self.conf_type!r}"
            )
        if self.rho < 0:
            raise ValidationError(f"rho must be >= 0, got {self.rho}")
        if self.n_jobs < 1:
            raise ValidationError(f"n_jobs must be >= 1, got {self.n_jobs}")

    def replace(self, **changes) -> AnalysisConfig:
        """Return a copy with the given fields changed (re-validated)."""
        return _dc_replace(self, **changes)


DEFAULT_CONFIG = AnalysisConfig()


def resolve_config(config: AnalysisConfig | None, **overrides) -> AnalysisConfig:
    """Merge keyword overrides (ignoring None) into a config."""
    base = DEFAULT_CONFIG if config is None else config
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return base
    return base.replace(**changes)
