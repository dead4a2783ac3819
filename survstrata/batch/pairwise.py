"""
Pairwise comparison engine.

For a grouping with k levels, every unordered pair of levels gets one
ComparisonResult: per-arm counts and KM medians, the two-sample log-rank
test, and a Cox fit of the pair (hazard ratio of ``group_a`` relative to
``group_b``). Pairs are independent and may run on a thread pool.

Failures inside a pair never remove the row: statistics that could not be
computed are NaN and the reason is kept in ``notes``.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Hashable, Mapping, Sequence

from survstrata.cohort.design import SubjectCohort
from survstrata.core.config import AnalysisConfig, resolve_config
from survstrata.core.exceptions import InsufficientGroups, SurvStrataError
from survstrata.core.logging import get_logger
from survstrata.survival.solvers import coxph, kaplan_meier, logrank_compare

logger = get_logger(__name__)

NAN = float("nan")


@dataclass(frozen=True)
class ComparisonResult:
    """One row of a pairwise comparison table.

    Medians are NaN when not reached. ``reliable`` is False when neither
    arm reaches the minimum event count; ``low_confidence`` is True when a
    statistic could not be computed or an arm had no events.
    """

    group_a: str
    group_b: str
    n_a: int
    n_b: int
    events_a: int
    events_b: int
    median_a: float
    median_b: float
    logrank_statistic: float
    logrank_p: float
    hazard_ratio: float
    hr_ci_lower: float
    hr_ci_upper: float
    hr_p: float
    reliable: bool
    low_confidence: bool
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_logrank(self) -> bool:
        return not math.isnan(self.logrank_p)

    @property
    def has_hazard_ratio(self) -> bool:
        return not math.isnan(self.hazard_ratio)

    def as_dict(self) -> dict[str, Any]:
        """Flat record; notes are joined with '; '."""
        return {
            "group_a": self.group_a,
            "group_b": self.group_b,
            "n_a": self.n_a,
            "n_b": self.n_b,
            "events_a": self.events_a,
            "events_b": self.events_b,
            "median_a": self.median_a,
            "median_b": self.median_b,
            "logrank_statistic": self.logrank_statistic,
            "logrank_p": self.logrank_p,
            "hazard_ratio": self.hazard_ratio,
            "hr_ci_lower": self.hr_ci_lower,
            "hr_ci_upper": self.hr_ci_upper,
            "hr_p": self.hr_p,
            "reliable": self.reliable,
            "low_confidence": self.low_confidence,
            "notes": "; ".join(self.notes),
        }


@dataclass(frozen=True)
class _Arm:
    label: str
    cohort: SubjectCohort
    median: float

    @property
    def n(self) -> int:
        return self.cohort.n

    @property
    def events(self) -> int:
        return self.cohort.n_events


def _make_arm(cohort: SubjectCohort, label: str, ids: Sequence[Hashable],
              cfg: AnalysisConfig) -> _Arm:
    sub = cohort.select(ids)
    median = NAN
    if sub.n > 0:
        km = kaplan_meier(sub, conf_level=cfg.conf_level, conf_type=cfg.conf_type)
        if km.median_survival is not None:
            median = km.median_survival
    return _Arm(label=label, cohort=sub, median=median)


def _error_note(stage: str, error: SurvStrataError) -> str:
    return f"{stage}: {type(error).__name__}: {error}"


def _compare_pair(
    cohort: SubjectCohort,
    arm_a: _Arm,
    arm_b: _Arm,
    cfg: AnalysisConfig,
) -> ComparisonResult:
    """Log-rank test and Cox fit for one pair of arms."""
    base = dict(
        group_a=arm_a.label, group_b=arm_b.label,
        n_a=arm_a.n, n_b=arm_b.n,
        events_a=arm_a.events, events_b=arm_b.events,
        median_a=arm_a.median, median_b=arm_b.median,
    )
    notes: list[str] = []

    if arm_a.events < cfg.min_events and arm_b.events < cfg.min_events:
        notes.append(
            f"fewer than {cfg.min_events} event(s) in both arms; "
            f"statistics not computed"
        )
        return ComparisonResult(
            **base,
            logrank_statistic=NAN, logrank_p=NAN,
            hazard_ratio=NAN, hr_ci_lower=NAN, hr_ci_upper=NAN, hr_p=NAN,
            reliable=False, low_confidence=True, notes=tuple(notes),
        )

    low_confidence = False

    lr_stat = lr_p = NAN
    try:
        lr = logrank_compare({arm_a.label: arm_a.cohort, arm_b.label: arm_b.cohort},
                             rho=cfg.rho)
        lr_stat, lr_p = lr.statistic, lr.p_value
        if lr.degenerate:
            low_confidence = True
            notes.extend(f"logrank: {w}" for w in lr.warnings)
    except SurvStrataError as e:
        low_confidence = True
        notes.append(_error_note("logrank", e))

    hr = ci_lo = ci_hi = hr_p = NAN
    pair_labels = {sid: arm_a.label for sid in arm_a.cohort.ids}
    pair_labels.update((sid, arm_b.label) for sid in arm_b.cohort.ids)
    try:
        cox = coxph(cohort, pair_labels, levels=(arm_a.label, arm_b.label),
                    reference=arm_b.label, config=cfg)
        hr, hr_p = cox.hazard_ratio, cox.p_value
        ci_lo, ci_hi = float(cox.ci_lower[0]), float(cox.ci_upper[0])
    except SurvStrataError as e:
        low_confidence = True
        notes.append(_error_note("cox", e))

    return ComparisonResult(
        **base,
        logrank_statistic=lr_stat, logrank_p=lr_p,
        hazard_ratio=hr, hr_ci_lower=ci_lo, hr_ci_upper=ci_hi, hr_p=hr_p,
        reliable=not math.isnan(lr_p),
        low_confidence=low_confidence,
        notes=tuple(notes),
    )


def compare_all(
    cohort: SubjectCohort,
    labels: Mapping[Hashable, str],
    groups: Sequence[str] | None = None,
    *,
    config: AnalysisConfig | None = None,
    n_jobs: int | None = None,
) -> tuple[ComparisonResult, ...]:
    """Compare every unordered pair of groups.

    Parameters
    ----------
    cohort : SubjectCohort
    labels : Mapping[id, label]
        Group of each subject, typically a Stratification.
    groups : sequence of str or None
        Levels to compare, in order. Defaults to the Stratification's
        levels, else the sorted distinct labels.
    config : AnalysisConfig or None
    n_jobs : int or None
        Worker threads; overrides ``config.n_jobs``.

    Returns
    -------
    tuple of ComparisonResult
        ``C(k, 2)`` rows in ``itertools.combinations`` order of ``groups``,
        independent of execution order.

    Raises
    ------
    InsufficientGroups
        Fewer than two distinct groups.
    """
    cfg = resolve_config(config, n_jobs=n_jobs)

    if groups is None:
        groups = getattr(labels, "levels", None) or sorted(set(labels.values()))
    groups = list(dict.fromkeys(groups))
    if len(groups) < 2:
        raise InsufficientGroups(
            f"Need at least 2 groups to compare, got {len(groups)}",
            n_groups=len(groups),
        )

    members: dict[str, list] = {g: [] for g in groups}
    for sid, label in labels.items():
        if label in members:
            members[label].append(sid)

    arms = {g: _make_arm(cohort, g, members[g], cfg) for g in groups}
    pairs = list(combinations(groups, 2))
    logger.debug("Comparing %d pairs across %d groups", len(pairs), len(groups))

    if cfg.n_jobs == 1 or len(pairs) == 1:
        return tuple(_compare_pair(cohort, arms[a], arms[b], cfg) for a, b in pairs)

    rows: list[ComparisonResult | None] = [None] * len(pairs)
    executor = ThreadPoolExecutor(max_workers=min(cfg.n_jobs, len(pairs)))
    try:
        futures = {
            executor.submit(_compare_pair, cohort, arms[a], arms[b], cfg): i
            for i, (a, b) in enumerate(pairs)
        }
        for future in as_completed(futures):
            rows[futures[future]] = future.result()
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return tuple(rows)
