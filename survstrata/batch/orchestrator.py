"""
Batch orchestrator.

Turns a cohort and a list of covariates (or subset definitions) into a lazy
stream of independent WorkItems, runs each through

    stratify -> [cross with primary] -> KM curve per group -> compare_all

and collects the outcome. A unit that fails with a survstrata error becomes
a SkipRecord; only an empty top-level cohort or an unusable primary
covariate abort the batch.

    run_single(cohort, covariate) -> UnitResult
    run_batch(cohort, primary, candidates) -> BatchSolution
    run_subsets(cohort, covariate, subsets) -> BatchSolution
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, Union

from survstrata.batch._exclusion import exclude_covariates
from survstrata.batch.pairwise import compare_all
from survstrata.batch.solution import BatchParams, BatchSolution, SkipRecord, UnitResult
from survstrata.cohort.design import SubjectCohort, SubjectRecord
from survstrata.core.compute.timing import Timer
from survstrata.core.config import AnalysisConfig, resolve_config
from survstrata.core.exceptions import (
    EmptyCohort,
    IncompleteStrata,
    InsufficientGroups,
    SurvStrataError,
    UnknownCovariate,
    ValidationError,
)
from survstrata.core.logging import get_logger
from survstrata.core.result import Result
from survstrata.stratify import Stratification, cross_product, stratify
from survstrata.survival.solvers import kaplan_meier

logger = get_logger(__name__)

SubsetRule = Union[Callable[[SubjectRecord], bool], tuple[str, Any]]


@dataclass(frozen=True)
class WorkItem:
    """One independent unit of analysis.

    Attributes:
        key: Unit key in the result table
        kind: "single", "cross" or "subset"
        cohort: Cohort the unit reads from
        covariate: Covariate to stratify on
        partner: Stratification to cross with, for "cross" units
        subset: Subset rule applied to ``cohort`` before stratifying
    """

    key: str
    kind: str
    cohort: SubjectCohort
    covariate: str
    partner: Stratification | None = None
    subset: SubsetRule | None = None


def iter_work_items(
    cohort: SubjectCohort,
    covariates: Iterable[str],
    *,
    partner: Stratification | None = None,
    subsets: Mapping[str, SubsetRule] | None = None,
) -> Iterator[WorkItem]:
    """Lazily generate work items.

    Without ``subsets`` there is one item per covariate, keyed by covariate
    name. With ``subsets`` there is one item per (subset, covariate), keyed
    by subset name when a single covariate is given, else
    ``"subset/covariate"``.
    """
    covariates = list(covariates)
    if subsets is None:
        kind = "single" if partner is None else "cross"
        for name in covariates:
            yield WorkItem(key=name, kind=kind, cohort=cohort, covariate=name,
                           partner=partner)
        return

    for subset_name, rule in subsets.items():
        for name in covariates:
            key = subset_name if len(covariates) == 1 else f"{subset_name}/{name}"
            yield WorkItem(key=key, kind="subset", cohort=cohort, covariate=name,
                           partner=partner, subset=rule)


def apply_subset(cohort: SubjectCohort, rule: SubsetRule) -> SubjectCohort:
    """Restrict a cohort by a predicate or a ``(covariate, levels)`` pair."""
    if callable(rule):
        return cohort.filter(rule)
    if isinstance(rule, tuple) and len(rule) == 2:
        name, levels = rule
        if not cohort.has_covariate(name):
            raise UnknownCovariate(
                f"subset refers to unknown covariate {name!r}", covariate=name,
            )
        return cohort.where(name, levels)
    raise ValidationError(
        f"subset rule must be a predicate or a (covariate, levels) pair, "
        f"got {type(rule).__name__}"
    )


def _analyse(
    cohort: SubjectCohort,
    covariate: str,
    key: str,
    partner: Stratification | None,
    cfg: AnalysisConfig,
) -> UnitResult:
    if cohort.n == 0:
        raise EmptyCohort(f"unit {key!r} has no subjects")

    strat = stratify(cohort, covariate, config=cfg)
    if partner is not None:
        strat = cross_product(partner, strat)
        if cfg.require_full_cross and not strat.is_complete:
            missing = tuple(lv for lv in strat.possible_levels
                            if lv not in strat.levels)
            raise IncompleteStrata(
                f"composite grouping {strat.covariate!r} has no subjects in "
                f"{list(missing)}",
                missing_levels=missing,
            )
    if len(strat.levels) < 2:
        raise InsufficientGroups(
            f"grouping {strat.covariate!r} has {len(strat.levels)} level(s)",
            n_groups=len(strat.levels),
        )

    curves = {
        level: kaplan_meier(cohort.select(ids), conf_level=cfg.conf_level,
                            conf_type=cfg.conf_type)
        for level, ids in strat.groups().items()
    }
    comparisons = compare_all(cohort, strat, config=cfg)
    return UnitResult(key=key, stratification=strat, curves=curves,
                      comparisons=comparisons)


def _process(item: WorkItem, cfg: AnalysisConfig) -> UnitResult:
    cohort = item.cohort
    if item.subset is not None:
        cohort = apply_subset(cohort, item.subset)
    return _analyse(cohort, item.covariate, item.key, item.partner, cfg)


def _run_isolated(
    item: WorkItem,
    cfg: AnalysisConfig,
) -> tuple[UnitResult | None, SkipRecord | None]:
    try:
        return _process(item, cfg), None
    except SurvStrataError as e:
        logger.info("Skipping %s: %s: %s", item.key, type(e).__name__, e)
        return None, SkipRecord.from_error(item.key, e)


def _execute(
    items: Iterable[WorkItem],
    cfg: AnalysisConfig,
) -> tuple[tuple[UnitResult, ...], tuple[SkipRecord, ...]]:
    """Fan out work items and collect outcomes in submission order."""
    if cfg.n_jobs == 1:
        outcomes = [_run_isolated(item, cfg) for item in items]
    else:
        # Pairs inside a unit run sequentially when units run in parallel
        unit_cfg = cfg.replace(n_jobs=1)
        executor = ThreadPoolExecutor(max_workers=cfg.n_jobs)
        try:
            futures = {
                executor.submit(_run_isolated, item, unit_cfg): i
                for i, item in enumerate(items)
            }
            outcomes = [None] * len(futures)
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    units = tuple(u for u, _ in outcomes if u is not None)
    skipped = tuple(s for _, s in outcomes if s is not None)
    return units, skipped


def run_single(
    cohort: SubjectCohort,
    covariate: str,
    *,
    config: AnalysisConfig | None = None,
) -> UnitResult:
    """Stratify one covariate and compare its groups.

    Unlike the batch entry points, errors propagate.
    """
    cfg = resolve_config(config)
    return _analyse(cohort, covariate, covariate, None, cfg)


def run_batch(
    cohort: SubjectCohort,
    primary_covariate: str,
    candidate_covariates: Sequence[str],
    *,
    config: AnalysisConfig | None = None,
    n_jobs: int | None = None,
) -> BatchSolution:
    """Cross every candidate covariate with the primary and compare groups.

    Parameters
    ----------
    cohort : SubjectCohort
    primary_covariate : str
        Covariate whose stratification is crossed with every candidate.
    candidate_covariates : sequence of str
    config : AnalysisConfig or None
    n_jobs : int or None
        Worker threads for the fan-out; overrides ``config.n_jobs``.

    Returns
    -------
    BatchSolution
        One UnitResult per analysed candidate (keyed by name) and one
        SkipRecord per candidate that was excluded or failed.

    Raises
    ------
    EmptyCohort
        The cohort has no subjects.
    InvalidCovariate
        The primary covariate cannot be stratified.
    """
    cfg = resolve_config(config, n_jobs=n_jobs)
    candidates = list(candidate_covariates)
    if cohort.n == 0:
        raise EmptyCohort("cohort has no eligible subjects")
    if not cohort.has_covariate(primary_covariate):
        raise UnknownCovariate(
            f"cohort has no primary covariate {primary_covariate!r}",
            covariate=primary_covariate,
        )

    timer = Timer()
    timer.start()

    with timer.section("stratify_primary"):
        primary = stratify(cohort, primary_covariate, config=cfg)

    with timer.section("exclusion"):
        kept, excluded = exclude_covariates(
            cohort, primary_covariate, candidates,
            threshold=cfg.duplicate_threshold,
        )

    with timer.section("units"):
        units, failed = _execute(
            iter_work_items(cohort, kept, partner=primary), cfg,
        )

    timer.stop()
    logger.debug("run_batch finished in %.3fs", timer.result()["total_seconds"])

    result = Result(
        params=BatchParams(units=units, skipped=excluded + failed),
        info={
            "method": "run_batch",
            "primary": primary_covariate,
            "primary_threshold": primary.threshold,
            "n_candidates": len(candidates),
            "n_jobs": cfg.n_jobs,
        },
        timing=timer.result(),
        backend_name="cpu_batch",
        warnings=(),
    )
    return BatchSolution(_result=result)


def run_subsets(
    cohort: SubjectCohort,
    covariate: str,
    subsets: Mapping[str, SubsetRule],
    *,
    config: AnalysisConfig | None = None,
    n_jobs: int | None = None,
) -> BatchSolution:
    """Run the single-covariate pipeline once per cohort subset.

    Parameters
    ----------
    cohort : SubjectCohort
    covariate : str
        Covariate stratified within each subset; the cut point is
        recomputed on the subset's own subjects.
    subsets : Mapping[str, rule]
        Subset name -> predicate on SubjectRecord, or a
        ``(covariate, levels)`` pair.

    Returns
    -------
    BatchSolution
        Keyed by subset name.
    """
    cfg = resolve_config(config, n_jobs=n_jobs)
    if cohort.n == 0:
        raise EmptyCohort("cohort has no eligible subjects")

    timer = Timer()
    timer.start()

    with timer.section("units"):
        units, failed = _execute(
            iter_work_items(cohort, [covariate], subsets=subsets), cfg,
        )

    timer.stop()

    result = Result(
        params=BatchParams(units=units, skipped=failed),
        info={
            "method": "run_subsets",
            "covariate": covariate,
            "n_subsets": len(subsets),
            "n_jobs": cfg.n_jobs,
        },
        timing=timer.result(),
        backend_name="cpu_batch",
        warnings=(),
    )
    return BatchSolution(_result=result)
