"""
Parameter payloads for survival analysis results.

Each dataclass is a frozen payload carried inside a Result[P] envelope.
"""

from __future__ import annotations

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class KMParams:
    """Kaplan-Meier survival curve parameters.

    One entry per distinct event time. Censoring-only times do not create
    steps; they only shrink later risk sets.
    """

    time: NDArray                # (m,) distinct event times
    survival: NDArray            # (m,) S(t) at each event time
    n_risk: NDArray              # (m,) subjects with time >= t
    n_events: NDArray            # (m,) events at t
    n_censored: NDArray          # (m,) censored records tied at t
    se: NDArray                  # (m,) Greenwood standard error
    ci_lower: NDArray            # (m,) lower CI for S(t)
    ci_upper: NDArray            # (m,) upper CI for S(t)
    conf_level: float            # confidence level (e.g. 0.95)
    conf_type: str               # CI type: "log" (default), "plain", "log-log"
    n_observations: int          # total n
    n_events_total: int          # total events
    n_censored_total: int        # total censored


@dataclass(frozen=True)
class LogRankParams:
    """Log-rank test parameters."""

    statistic: float             # chi-squared statistic
    df: int                      # degrees of freedom (n_groups - 1)
    p_value: float
    n_groups: int
    observed: NDArray            # (n_groups,) observed events per group
    expected: NDArray            # (n_groups,) expected events per group
    n_per_group: NDArray         # (n_groups,) subjects per group
    rho: float                   # weight parameter (0=log-rank, 1=Peto-Peto)
    group_labels: NDArray        # group labels, in input order


@dataclass(frozen=True)
class CoxParams:
    """Cox proportional hazards model parameters."""

    coefficients: NDArray        # (p,) log hazard ratios
    hazard_ratios: NDArray       # (p,) exp(coef)
    standard_errors: NDArray     # (p,) from observed information matrix
    z_statistics: NDArray        # (p,) coef / se
    p_values: NDArray            # (p,) two-sided Wald test
    ci_lower: NDArray            # (p,) lower CI for the hazard ratio
    ci_upper: NDArray            # (p,) upper CI for the hazard ratio
    conf_level: float
    loglik: tuple[float, float]  # (null log-lik, model log-lik)
    lr_statistic: float          # 2 * (model - null)
    lr_p_value: float            # chi-squared on p df
    concordance: float           # Harrell's C-statistic
    n_events: int
    n_observations: int
    n_iter: int                  # Newton-Raphson iterations
    converged: bool
    ties: str                    # "breslow" or "efron"
    terms: tuple[str, ...]       # column names of X
