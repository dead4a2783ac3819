"""
Log-rank test (G-rho family) for comparing survival curves across groups.

- Standard log-rank test (rho=0): Mantel-Haenszel
- G-rho family (rho>0): Fleming-Harrington weighted variant
  When rho=1, gives the Peto & Peto modification of the Gehan-Wilcoxon test.

Algorithm:
    1. Sort all observations by time
    2. At each distinct event time t_j in the pooled sample:
       - n_kj = number at risk in group k at t_j
       - d_kj = observed events in group k at t_j
       - N_j = total at risk, D_j = total events
       - Expected events in group k: E_kj = n_kj * D_j / N_j
       - Weight w_j = S_hat(t_j-)^rho (pooled KM just before t_j)
    3. Test statistic: (O - E)' V^{-1} (O - E) over the first k-1 groups,
       chi-squared on k-1 degrees of freedom

References:
    Harrington, D. P. & Fleming, T. R. (1982). A class of rank test
        procedures for censored survival data. Biometrika, 69(3), 553-566.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from survstrata.core.exceptions import InsufficientGroups
from survstrata.survival._common import LogRankParams


def logrank_test(
    time: NDArray,
    event: NDArray,
    group: NDArray,
    rho: float = 0.0,
    group_order: Sequence | None = None,
) -> LogRankParams:
    """Compute log-rank test (G-rho family).

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    group : NDArray
        (n,) group labels.
    rho : float
        G-rho weight parameter: rho=0 is standard log-rank,
        rho=1 is Peto & Peto / Gehan-Wilcoxon.
    group_order : sequence or None
        Order in which groups are reported. Defaults to sorted labels.

    Returns
    -------
    LogRankParams
    """
    n = len(time)

    if group_order is None:
        unique_groups = np.unique(group)
    else:
        # Element-wise fill keeps tuple labels as single entries
        order_list = list(group_order)
        unique_groups = np.empty(len(order_list), dtype=object)
        for k, g in enumerate(order_list):
            unique_groups[k] = g
    n_groups = len(unique_groups)

    if n_groups < 2:
        raise InsufficientGroups(
            f"Need at least 2 groups for log-rank test, got {n_groups}",
            n_groups=n_groups,
        )

    index_of = {g: k for k, g in enumerate(unique_groups)}
    group_idx = np.fromiter((index_of.get(g, -1) for g in group),
                            dtype=np.intp, count=n)
    if np.any(group_idx < 0):
        raise ValueError("group contains labels missing from group_order")

    n_per_group = np.bincount(group_idx, minlength=n_groups).astype(np.float64)

    order = np.argsort(time, kind="stable")
    t_sorted = time[order]
    e_sorted = event[order]
    g_sorted = group_idx[order]

    unique_event_times = np.unique(t_sorted[e_sorted == 1])

    if len(unique_event_times) == 0:
        # No events: test is meaningless
        return LogRankParams(
            statistic=0.0,
            df=n_groups - 1,
            p_value=1.0,
            n_groups=n_groups,
            observed=np.zeros(n_groups, dtype=np.float64),
            expected=np.zeros(n_groups, dtype=np.float64),
            n_per_group=n_per_group,
            rho=rho,
            group_labels=unique_groups,
        )

    m = len(unique_event_times)
    d_kg = np.zeros((m, n_groups), dtype=np.float64)  # events per group
    n_kg = np.zeros((m, n_groups), dtype=np.float64)  # at risk per group

    at_risk = n_per_group.copy()
    ptr = 0

    for j, t_j in enumerate(unique_event_times):
        # Remove subjects with time < t_j from risk sets
        while ptr < n and t_sorted[ptr] < t_j:
            at_risk[g_sorted[ptr]] -= 1
            ptr += 1

        n_kg[j] = at_risk

        # Events and censoring at exactly t_j
        while ptr < n and t_sorted[ptr] == t_j:
            if e_sorted[ptr] == 1:
                d_kg[j, g_sorted[ptr]] += 1
            at_risk[g_sorted[ptr]] -= 1
            ptr += 1

    D_j = d_kg.sum(axis=1)
    N_j = n_kg.sum(axis=1)

    if rho == 0.0:
        weights = np.ones(m, dtype=np.float64)
    else:
        # Pooled KM just before each event time: S(t_0-) = 1
        cum_surv = np.cumprod(1.0 - D_j / np.maximum(N_j, 1.0))
        s_before = np.ones(m, dtype=np.float64)
        s_before[1:] = cum_surv[:-1]
        weights = s_before ** rho

    # E_k = Σ_j w_j * n_kj * D_j / N_j
    observed = (weights[:, None] * d_kg).sum(axis=0)
    expected = (weights[:, None] * n_kg * (D_j / N_j)[:, None]).sum(axis=0)

    # Mantel-Haenszel variance:
    # V_kl = Σ_j w_j^2 D_j (N_j - D_j) / (N_j^2 (N_j - 1)) * n_kj (δ_kl N_j - n_lj)
    V = np.zeros((n_groups, n_groups), dtype=np.float64)
    for j in range(m):
        if N_j[j] <= 1:
            continue
        factor = (weights[j] ** 2 * D_j[j] * (N_j[j] - D_j[j])
                  / (N_j[j] ** 2 * (N_j[j] - 1)))
        nk = n_kg[j]
        V += factor * (np.diag(nk * N_j[j]) - np.outer(nk, nk))

    # Drop the last group: Σ(O_k - E_k) = 0 makes V singular
    df = n_groups - 1
    oe_diff = (observed - expected)[:df]
    V_sub = V[:df, :df]

    if df == 1:
        statistic = float(oe_diff[0] ** 2 / V_sub[0, 0]) if V_sub[0, 0] > 0 else 0.0
    else:
        try:
            statistic = float(oe_diff @ np.linalg.solve(V_sub, oe_diff))
        except np.linalg.LinAlgError:
            # Fall back to the pseudo-inverse when a group has nobody at risk
            statistic = float(oe_diff @ np.linalg.pinv(V_sub) @ oe_diff)

    p_value = float(stats.chi2.sf(statistic, df))

    return LogRankParams(
        statistic=statistic,
        df=df,
        p_value=p_value,
        n_groups=n_groups,
        observed=observed,
        expected=expected,
        n_per_group=n_per_group,
        rho=rho,
        group_labels=unique_groups,
    )
