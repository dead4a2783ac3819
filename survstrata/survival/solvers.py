"""
Public API for survival analysis.

    kaplan_meier(cohort) -> KMSolution
    kaplan_meier(time, event) -> KMSolution
    logrank_compare(groups) -> LogRankSolution
    survdiff(time, event, group) -> LogRankSolution
    coxph(cohort, group_labels) -> CoxSolution
    coxph_matrix(time, event, X) -> CoxSolution

Each function validates inputs, dispatches to the numerical kernel, and
wraps the Result in a Solution.
"""

from __future__ import annotations

import warnings
from typing import Hashable, Literal, Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from survstrata.cohort.design import SubjectCohort
from survstrata.core.compute.timing import Timer
from survstrata.core.config import (
    VALID_CONF_TYPES,
    AnalysisConfig,
    resolve_config,
)
from survstrata.core.exceptions import (
    DegenerateGroup,
    EmptyCohort,
    InsufficientGroups,
    SeparationError,
    ValidationError,
)
from survstrata.core.result import Result
from survstrata.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_event_indicator,
    check_probability,
)
from survstrata.survival._cox import cox_fit
from survstrata.survival._km import kaplan_meier_fit
from survstrata.survival._logrank import logrank_test
from survstrata.survival.solution import CoxSolution, KMSolution, LogRankSolution


def _survival_arrays(time, event) -> tuple[NDArray, NDArray]:
    """Validate raw time/event arrays."""
    time = check_array(time, "time").ravel()
    event = check_array(event, "event").ravel()
    check_1d(time, "time")
    check_consistent_length(time, event, names=("time", "event"))

    if len(time) == 0:
        raise EmptyCohort("time and event are empty")
    if not np.all(np.isfinite(time)):
        raise ValidationError("time contains NaN or infinite values")
    if np.any(time < 0):
        raise ValidationError(
            f"time must be non-negative, got min {np.min(time)}"
        )
    if np.any(np.isnan(event)):
        raise ValidationError("event contains missing values")
    check_event_indicator(event)
    return time, event


def _cohort_arrays(cohort: SubjectCohort) -> tuple[NDArray, NDArray]:
    if cohort.n == 0:
        raise EmptyCohort("cohort has no eligible subjects")
    return np.asarray(cohort.time, dtype=np.float64), cohort.event.astype(np.float64)


def kaplan_meier(
    cohort_or_time,
    event=None,
    *,
    conf_level: float = 0.95,
    conf_type: Literal["log", "plain", "log-log"] = "log",
) -> KMSolution:
    """Kaplan-Meier survival curve estimation.

    Parameters
    ----------
    cohort_or_time : SubjectCohort or array-like
        A cohort, or the time to event or censoring.
    event : array-like or None
        Event indicator (1=event, 0=censored). Required with raw times,
        must be omitted with a cohort.
    conf_level : float
        Confidence level for CI (default 0.95).
    conf_type : str
        CI transformation: "log" (default), "plain", "log-log".

    Returns
    -------
    KMSolution

    Raises
    ------
    EmptyCohort
        If there are no subjects.
    """
    if isinstance(cohort_or_time, SubjectCohort):
        if event is not None:
            raise ValueError("event must not be given together with a cohort")
        time, event = _cohort_arrays(cohort_or_time)
    else:
        if event is None:
            raise ValueError("event is required when passing raw times")
        time, event = _survival_arrays(cohort_or_time, event)

    check_probability(conf_level, "conf_level")
    if conf_type not in VALID_CONF_TYPES:
        raise ValidationError(
            f"conf_type must be 'log', 'plain', or 'log-log', "
            f"got '{conf_type}'"
        )

    timer = Timer()
    timer.start()

    params = kaplan_meier_fit(
        time, event,
        conf_level=conf_level,
        conf_type=conf_type,
    )

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Kaplan-Meier"},
        timing=timer.result(),
        backend_name="cpu_km",
        warnings=(),
    )

    return KMSolution(_result=result)


def _degenerate_warnings(params, stacklevel: int) -> tuple[str, ...]:
    """Warn once per group with zero observed events."""
    messages = []
    for label, n_obs, n_in in zip(params.group_labels, params.observed,
                                  params.n_per_group):
        if n_obs == 0:
            msg = (
                f"group '{label}' ({int(n_in)} subjects) has no events; "
                f"log-rank result may be unstable"
            )
            warnings.warn(msg, DegenerateGroup, stacklevel=stacklevel)
            messages.append(msg)
    return tuple(messages)


def _logrank_solution(time, event, group, rho, group_order, info) -> LogRankSolution:
    if rho < 0:
        raise ValidationError(f"rho must be >= 0, got {rho}")

    timer = Timer()
    timer.start()

    params = logrank_test(time, event, group, rho=rho, group_order=group_order)

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Log-rank test", "rho": rho, **info},
        timing=timer.result(),
        backend_name="cpu_logrank",
        warnings=_degenerate_warnings(params, stacklevel=4),
    )

    return LogRankSolution(_result=result)


def survdiff(
    time,
    event,
    group,
    *,
    rho: float = 0.0,
) -> LogRankSolution:
    """Log-rank test (and G-rho family) on raw arrays.

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    group : array-like
        Group labels; groups are reported in sorted order.
    rho : float
        G-rho weight parameter. rho=0 (default) gives the standard
        log-rank test. rho=1 gives Peto & Peto / Gehan-Wilcoxon.

    Returns
    -------
    LogRankSolution
    """
    time, event = _survival_arrays(time, event)
    group = np.asarray(group).ravel()

    if len(group) != len(time):
        raise ValueError(
            f"group must have {len(time)} elements to match time, "
            f"got {len(group)}"
        )

    return _logrank_solution(time, event, group, rho, None, {})


def logrank_compare(
    groups: Sequence[SubjectCohort] | Mapping[Hashable, SubjectCohort],
    *,
    rho: float = 0.0,
) -> LogRankSolution:
    """k-sample log-rank test over disjoint cohorts.

    Parameters
    ----------
    groups : sequence or mapping of SubjectCohort
        One cohort per group. With a sequence the groups are labelled by
        position. Empty cohorts are ignored.
    rho : float
        G-rho weight parameter.

    Returns
    -------
    LogRankSolution
        A DegenerateGroup warning is issued (and recorded) for every group
        with zero events; the statistic is still computed.

    Raises
    ------
    InsufficientGroups
        Fewer than two non-empty groups.
    """
    if isinstance(groups, Mapping):
        items = list(groups.items())
    else:
        items = list(enumerate(groups))

    non_empty = [(label, c) for label, c in items if c.n > 0]
    if len(non_empty) < 2:
        raise InsufficientGroups(
            f"Need at least 2 non-empty groups, got {len(non_empty)} "
            f"of {len(items)}",
            n_groups=len(non_empty),
        )

    labels = [label for label, _ in non_empty]
    time = np.concatenate([c.time for _, c in non_empty]).astype(np.float64)
    event = np.concatenate([c.event for _, c in non_empty]).astype(np.float64)
    group = np.empty(len(time), dtype=object)
    start = 0
    for label, c in non_empty:
        for i in range(start, start + c.n):
            group[i] = label
        start += c.n

    return _logrank_solution(
        time, event, group, rho, labels,
        {"n_ignored_empty": len(items) - len(non_empty)},
    )


def coxph(
    cohort: SubjectCohort,
    group_labels: Mapping[Hashable, str],
    *,
    reference: str | None = None,
    levels: Sequence[str] | None = None,
    ties: Literal["breslow", "efron"] | None = None,
    tol: float | None = None,
    max_iter: int | None = None,
    conf_level: float | None = None,
    config: AnalysisConfig | None = None,
) -> CoxSolution:
    """Cox proportional hazards model on group membership.

    Parameters
    ----------
    cohort : SubjectCohort
    group_labels : Mapping[id, label]
        Group of each subject; subjects without a label are dropped.
    reference : str or None
        Baseline level. Defaults to the last level, so with two levels
        ``(a, b)`` the hazard ratio is that of ``a`` relative to ``b``.
    levels : sequence of str or None
        Level order. Defaults to the Stratification's levels, else sorted.
    ties : str or None
        "breslow" (default) or "efron".
    tol : float or None
        Convergence tolerance for Newton-Raphson.
    max_iter : int or None
        Maximum Newton-Raphson iterations.
    conf_level : float or None
        Confidence level for hazard-ratio intervals.
    config : AnalysisConfig or None
        Defaults for every keyword left as None.

    Returns
    -------
    CoxSolution

    Raises
    ------
    EmptyCohort
        No labelled subjects.
    InsufficientGroups
        Fewer than two levels present.
    SeparationError
        A level has zero events.
    NonConvergence
        Newton-Raphson failed.
    """
    cfg = resolve_config(
        config, ties=ties, cox_tol=tol, cox_max_iter=max_iter,
        conf_level=conf_level,
    )

    mask = np.fromiter((sid in group_labels for sid in cohort.ids),
                       dtype=bool, count=cohort.n)
    sub = cohort.subset(mask)
    time, event = _cohort_arrays(sub)
    labels = np.array([group_labels[sid] for sid in sub.ids], dtype=object)

    present = set(labels)
    if levels is None:
        levels = getattr(group_labels, "levels", None) or sorted(present)
    else:
        stray = present - set(levels)
        if stray:
            raise ValidationError(
                f"group_labels use levels {sorted(stray)} not listed in levels"
            )
    levels = [lv for lv in levels if lv in present]

    if len(levels) < 2:
        raise InsufficientGroups(
            f"Need at least 2 groups for a Cox fit, got {len(levels)}",
            n_groups=len(levels),
        )

    if reference is None:
        reference = levels[-1]
    elif reference not in levels:
        raise ValidationError(
            f"reference {reference!r} is not one of the levels {levels}"
        )

    events_by_level = {lv: int(np.sum(event[labels == lv])) for lv in levels}
    zero = tuple(lv for lv, d in events_by_level.items() if d == 0)
    if zero:
        raise SeparationError(
            f"groups {list(zero)} have no events; the partial likelihood "
            f"has no finite maximum",
            zero_event_levels=zero,
        )

    terms = tuple(lv for lv in levels if lv != reference)
    X = np.column_stack([(labels == lv).astype(np.float64) for lv in terms])

    timer = Timer()
    timer.start()

    params = cox_fit(
        time, event, X,
        ties=cfg.ties,
        tol=cfg.cox_tol,
        max_iter=cfg.cox_max_iter,
        conf_level=cfg.conf_level,
        terms=terms,
    )

    timer.stop()

    result = Result(
        params=params,
        info={
            "method": "Cox PH",
            "ties": cfg.ties,
            "n_iter": params.n_iter,
            "reference": reference,
            "levels": tuple(levels),
            "events_by_level": events_by_level,
        },
        timing=timer.result(),
        backend_name="cpu_cox",
        warnings=(),
    )

    return CoxSolution(_result=result)


def coxph_matrix(
    time,
    event,
    X,
    *,
    names: Sequence[str] | None = None,
    ties: Literal["breslow", "efron"] = "breslow",
    tol: float = 1e-9,
    max_iter: int = 20,
    conf_level: float = 0.95,
) -> CoxSolution:
    """Cox proportional hazards model on an arbitrary covariate matrix.

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    X : array-like
        Covariate matrix (n, p). No intercept.
    names : sequence of str or None
        Column names, default ``x0..x{p-1}``.

    Returns
    -------
    CoxSolution
    """
    time, event = _survival_arrays(time, event)
    X = check_array(X, "X")
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValidationError(f"X must be 2D, got {X.ndim}D")
    check_consistent_length(time, X, names=("time", "X"))
    if not np.all(np.isfinite(X)):
        raise ValidationError("X contains NaN or infinite values")

    if ties not in ("breslow", "efron"):
        raise ValidationError(
            f"ties must be 'breslow' or 'efron', got '{ties}'"
        )
    check_probability(conf_level, "conf_level")

    terms = tuple(names) if names is not None else None
    if terms is not None and len(terms) != X.shape[1]:
        raise ValidationError(
            f"names has {len(terms)} entries for {X.shape[1]} columns"
        )

    timer = Timer()
    timer.start()

    params = cox_fit(
        time, event, X,
        ties=ties,
        tol=tol,
        max_iter=max_iter,
        conf_level=conf_level,
        terms=terms,
    )

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Cox PH", "ties": ties, "n_iter": params.n_iter},
        timing=timer.result(),
        backend_name="cpu_cox",
        warnings=(),
    )

    return CoxSolution(_result=result)
