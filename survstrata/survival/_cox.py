"""
Cox Proportional Hazards model via Newton-Raphson.

Implements Breslow's and Efron's methods for tied event times.

Algorithm:
    Initialize β = 0
    For iteration 1..max_iter:
        Compute: partial log-likelihood L(β), score U(β), information I(β)
        β_new = β + I(β)^{-1} @ U(β)
        Check convergence: max|β_new - β| < tol

Breslow's partial likelihood:
    L(β) = Σ_{j: event times} [ Σ_{i ∈ D_j} x_i @ β
            - d_j * log(Σ_{l ∈ R_j} exp(x_l @ β)) ]

Efron's partial likelihood:
    L(β) = Σ_{j: event times} [ Σ_{i ∈ D_j} x_i @ β
            - Σ_{s=0}^{d_j-1} log(Σ_{l ∈ R_j} exp(x_l @ β)
                - (s/d_j) * Σ_{i ∈ D_j} exp(x_i @ β)) ]

    where D_j = set of events at time t_j, d_j = |D_j|,
          R_j = risk set at time t_j (alive just before t_j).

References:
    Cox, D. R. (1972). Regression models and life-tables. JRSS-B, 34(2), 187-220.
    Breslow, N. (1974). Covariance analysis of censored survival data.
        Biometrics, 30(1), 89-99.
    Efron, B. (1977). The efficiency of Cox's likelihood function for
        censored data. JASA, 72(359), 557-565.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from survstrata.core.exceptions import NonConvergence
from survstrata.survival._common import CoxParams

# Largest allowed Newton step, keeps exp(X @ beta) finite
MAX_STEP = 5.0


def cox_fit(
    time: NDArray,
    event: NDArray,
    X: NDArray,
    ties: str = "breslow",
    tol: float = 1e-9,
    max_iter: int = 20,
    conf_level: float = 0.95,
    terms: tuple[str, ...] | None = None,
) -> CoxParams:
    """Fit Cox proportional hazards model.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    X : NDArray
        (n, p) covariate matrix (NO intercept).
    ties : str
        Method for handling tied event times: "breslow" (default) or "efron".
    tol : float
        Convergence tolerance (max absolute change in β).
    max_iter : int
        Maximum Newton-Raphson iterations.
    conf_level : float
        Confidence level for hazard-ratio intervals.
    terms : tuple of str or None
        Column names of X.

    Returns
    -------
    CoxParams

    Raises
    ------
    NonConvergence
        If the information matrix becomes singular or max_iter is reached.
        ``reason == "monotone_likelihood"`` when the log-likelihood has
        flattened while coefficients are still moving (quasi-separation).
    """
    n, p = X.shape
    if terms is None:
        terms = tuple(f"x{i}" for i in range(p))

    order = np.argsort(time, kind="stable")
    t_sorted = time[order]
    e_sorted = event[order]
    X_sorted = X[order]

    unique_event_times = np.unique(t_sorted[e_sorted == 1])
    n_events_total = int(np.sum(event))

    if n_events_total == 0:
        # No events: flat likelihood, nothing to estimate
        return CoxParams(
            coefficients=np.zeros(p, dtype=np.float64),
            hazard_ratios=np.ones(p, dtype=np.float64),
            standard_errors=np.full(p, np.inf),
            z_statistics=np.zeros(p, dtype=np.float64),
            p_values=np.ones(p, dtype=np.float64),
            ci_lower=np.zeros(p, dtype=np.float64),
            ci_upper=np.full(p, np.inf),
            conf_level=conf_level,
            loglik=(0.0, 0.0),
            lr_statistic=0.0,
            lr_p_value=1.0,
            concordance=0.5,
            n_events=0,
            n_observations=n,
            n_iter=0,
            converged=True,
            ties=ties,
            terms=terms,
        )

    beta = np.zeros(p, dtype=np.float64)
    null_loglik = _partial_loglik(
        beta, t_sorted, e_sorted, X_sorted, unique_event_times, ties
    )

    converged = False
    n_iter = 0
    change = np.inf
    loglik_old = null_loglik
    loglik_gain = np.inf
    step = np.zeros(p, dtype=np.float64)

    for iteration in range(1, max_iter + 1):
        _, score, info_matrix = _score_and_information(
            beta, t_sorted, e_sorted, X_sorted, unique_event_times, ties
        )

        # Newton step: β_new = β + I^{-1} @ U
        try:
            step = np.linalg.solve(info_matrix, score)
        except np.linalg.LinAlgError as e:
            raise NonConvergence(
                f"Information matrix is singular at iteration {iteration}",
                iterations=iteration - 1,
                final_change=float(change),
                reason="singular_information",
                threshold=tol,
            ) from e

        max_step = np.max(np.abs(step))
        if max_step > MAX_STEP:
            step = step * (MAX_STEP / max_step)

        beta_new = beta + step
        change = float(np.max(np.abs(beta_new - beta)))
        loglik_new = _partial_loglik(
            beta_new, t_sorted, e_sorted, X_sorted, unique_event_times, ties
        )
        loglik_gain = loglik_new - loglik_old

        n_iter = iteration
        if change < tol:
            beta = beta_new
            converged = True
            break

        # Also accept convergence on relative loglik change
        if iteration > 1 and abs(loglik_new - loglik_old) / (abs(loglik_old) + 0.1) < tol:
            beta = beta_new
            converged = True
            break

        beta = beta_new
        loglik_old = loglik_new

    if not converged:
        # Loglik has settled but some coefficient is still drifting
        if abs(loglik_gain) < np.sqrt(tol) * (abs(loglik_old) + 0.1):
            drifting = [t for t, s in zip(terms, step) if abs(s) >= tol]
            raise NonConvergence(
                f"monotone likelihood: coefficient(s) {drifting} diverge "
                f"while the log-likelihood has converged "
                f"(quasi-separation, last change {change:.3g})",
                iterations=n_iter,
                final_change=change,
                reason="monotone_likelihood",
                threshold=tol,
            )
        raise NonConvergence(
            f"Newton-Raphson did not converge in {max_iter} iterations "
            f"(last change {change:.3g}, tol {tol:g})",
            iterations=n_iter,
            final_change=change,
            reason="max_iterations",
            threshold=tol,
        )

    model_loglik, _, info_final = _score_and_information(
        beta, t_sorted, e_sorted, X_sorted, unique_event_times, ties
    )

    try:
        var_matrix = np.linalg.inv(info_final)
        se = np.sqrt(np.maximum(np.diag(var_matrix), 0.0))
    except np.linalg.LinAlgError:
        se = np.full(p, np.inf)

    # Wald z-statistics and two-sided p-values
    with np.errstate(divide='ignore', invalid='ignore'):
        z = np.where(se > 0, beta / se, 0.0)
    p_values = 2.0 * stats.norm.sf(np.abs(z))

    zq = stats.norm.ppf((1.0 + conf_level) / 2.0)
    with np.errstate(over='ignore', invalid='ignore'):
        ci_lower = np.exp(beta - zq * se)
        ci_upper = np.exp(beta + zq * se)

    lr_statistic = float(max(2.0 * (model_loglik - null_loglik), 0.0))
    lr_p_value = float(stats.chi2.sf(lr_statistic, p))

    return CoxParams(
        coefficients=beta,
        hazard_ratios=np.exp(beta),
        standard_errors=se,
        z_statistics=z,
        p_values=p_values,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        conf_level=conf_level,
        loglik=(float(null_loglik), float(model_loglik)),
        lr_statistic=lr_statistic,
        lr_p_value=lr_p_value,
        concordance=_concordance(beta, time, event, X),
        n_events=n_events_total,
        n_observations=n,
        n_iter=n_iter,
        converged=converged,
        ties=ties,
        terms=terms,
    )


def _partial_loglik(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
    unique_event_times: NDArray,
    ties: str,
) -> float:
    """Compute partial log-likelihood.

    Parameters
    ----------
    beta : (p,)
    time : (n,) sorted ascending
    event : (n,) sorted
    X : (n, p) sorted
    unique_event_times : distinct event times
    ties : "breslow" or "efron"
    """
    eta = X @ beta

    # Center eta for numerical stability (cancels in partial likelihood)
    eta_c = eta - (np.max(eta) if len(eta) > 0 else 0.0)
    exp_eta = np.exp(eta_c)

    loglik = 0.0

    for t_j in unique_event_times:
        risk_exp_sum = np.sum(exp_eta[time >= t_j])

        event_at_tj = (time == t_j) & (event == 1)
        d_j = int(np.sum(event_at_tj))

        event_eta_sum = np.sum(eta_c[event_at_tj])

        if ties == "breslow" or d_j == 1:
            loglik += event_eta_sum - d_j * np.log(risk_exp_sum)
        else:
            death_exp_sum = np.sum(exp_eta[event_at_tj])
            for s in range(d_j):
                denom = risk_exp_sum - (s / d_j) * death_exp_sum
                if denom > 0:
                    loglik -= np.log(denom)
            loglik += event_eta_sum

    return float(loglik)


def _score_and_information(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
    unique_event_times: NDArray,
    ties: str,
) -> tuple[float, NDArray, NDArray]:
    """Compute log-likelihood, score vector, and observed information matrix.

    Returns
    -------
    (loglik, score, info_matrix)
        loglik : float
        score : (p,): gradient of log-likelihood
        info_matrix : (p, p): negative Hessian (observed information)
    """
    n, p = X.shape
    eta = X @ beta

    eta_c = eta - (np.max(eta) if n > 0 else 0.0)
    exp_eta = np.exp(eta_c)

    loglik = 0.0
    score = np.zeros(p, dtype=np.float64)
    info_matrix = np.zeros((p, p), dtype=np.float64)

    for t_j in unique_event_times:
        risk_mask = time >= t_j
        risk_exp = exp_eta[risk_mask]
        risk_X = X[risk_mask]

        S0 = np.sum(risk_exp)
        S1 = risk_X.T @ risk_exp
        S2 = (risk_X * risk_exp[:, np.newaxis]).T @ risk_X

        event_at_tj = (time == t_j) & (event == 1)
        d_j = int(np.sum(event_at_tj))

        event_X = X[event_at_tj]
        event_X_sum = np.sum(event_X, axis=0)
        event_eta_c_sum = np.sum(eta_c[event_at_tj])

        if ties == "breslow" or d_j == 1:
            loglik += event_eta_c_sum - d_j * np.log(S0)
            score += event_X_sum - d_j * S1 / S0
            info_matrix += d_j * (S2 / S0 - np.outer(S1, S1) / S0**2)
        else:
            event_exp = exp_eta[event_at_tj]
            death_S0 = np.sum(event_exp)
            death_S1 = event_X.T @ event_exp
            death_S2 = (event_X * event_exp[:, np.newaxis]).T @ event_X

            loglik += event_eta_c_sum
            for s in range(d_j):
                frac = s / d_j
                denom = S0 - frac * death_S0
                if denom <= 0:
                    continue
                mean = (S1 - frac * death_S1) / denom
                loglik -= np.log(denom)
                score -= mean
                info_matrix += (S2 - frac * death_S2) / denom - np.outer(mean, mean)
            score += event_X_sum

    return float(loglik), score, info_matrix


def _concordance(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
) -> float:
    """Harrell's concordance statistic (C-statistic).

    C = P(risk_i > risk_j | T_i < T_j, event_i = 1)
    """
    eta = X @ beta

    # comparable[i, j]: i had an event before j's time
    comparable = (event == 1)[:, None] & (time[None, :] > time[:, None])
    diff = eta[:, None] - eta[None, :]

    concordant = int(np.sum(comparable & (diff > 0)))
    discordant = int(np.sum(comparable & (diff < 0)))
    tied_risk = int(np.sum(comparable & (diff == 0)))

    total = concordant + discordant + tied_risk
    if total == 0:
        return 0.5

    return (concordant + 0.5 * tied_risk) / total
