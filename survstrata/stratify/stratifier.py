"""
Stratifier: derive group labels from covariates.

    threshold_split   numeric covariate -> High/Low at a quantile cut
    category_split    categorical covariate -> one group per level
    stratify          dispatch on the covariate kind
    cross_product     two labelings -> composite labels

Cut point rule: the quantile (median by default) is taken over the subjects
that have a value for the covariate, not over the whole cohort. Values equal
to the cut point are labelled High.
"""

from __future__ import annotations

from typing import Hashable, Mapping

import numpy as np

from survstrata.cohort.design import CovariateKind, SubjectCohort
from survstrata.core.config import AnalysisConfig, resolve_config
from survstrata.core.exceptions import InvalidCovariate
from survstrata.stratify._labels import Stratification, composite_label


def threshold_split(
    cohort: SubjectCohort,
    name: str,
    *,
    quantile: float = 0.5,
    high_label: str = "High",
    low_label: str = "Low",
) -> Stratification:
    """Split a numeric covariate at a quantile of its available values.

    Parameters
    ----------
    cohort : SubjectCohort
    name : str
        Numeric covariate.
    quantile : float
        Cut point quantile; 0.5 is the median split.
    high_label, low_label : str
        Labels for ``value >= cut`` and ``value < cut``.

    Returns
    -------
    Stratification
        Subjects with a missing value are not labelled.

    Raises
    ------
    InvalidCovariate
        Categorical covariate, fewer than two distinct values, or a cut
        that leaves one side empty.
    """
    col = cohort.column(name)
    if col.kind is not CovariateKind.NUMERIC:
        raise InvalidCovariate(
            f"covariate {name!r} is categorical; threshold split needs "
            f"numeric values",
            covariate=name,
        )

    present = ~col.missing
    values = col.values[present]
    ids = cohort.ids[present]

    n_distinct = len(np.unique(values))
    if n_distinct < 2:
        raise InvalidCovariate(
            f"covariate {name!r} has {n_distinct} distinct value(s) among "
            f"{len(values)} subjects; cannot split",
            covariate=name,
            n_distinct=n_distinct,
        )

    cut = float(np.quantile(values, quantile))
    high = values >= cut
    if high.all() or not high.any():
        raise InvalidCovariate(
            f"covariate {name!r} split at {cut:.6g} leaves one group empty",
            covariate=name,
            n_distinct=n_distinct,
        )

    labels = {
        sid: (high_label if h else low_label) for sid, h in zip(ids, high)
    }
    return Stratification(
        labels,
        covariate=name,
        levels=(high_label, low_label),
        threshold=cut,
    )


def category_split(cohort: SubjectCohort, name: str) -> Stratification:
    """One group per observed level of a categorical covariate."""
    col = cohort.column(name)
    if col.kind is not CovariateKind.CATEGORICAL:
        raise InvalidCovariate(
            f"covariate {name!r} is numeric; use threshold_split",
            covariate=name,
        )

    present = ~col.missing
    labels = dict(zip(cohort.ids[present], col.values[present]))
    levels = sorted(set(labels.values()))
    if len(levels) < 2:
        raise InvalidCovariate(
            f"covariate {name!r} has {len(levels)} level(s); cannot split",
            covariate=name,
            n_distinct=len(levels),
        )
    return Stratification(labels, covariate=name, levels=levels)


def stratify(
    cohort: SubjectCohort,
    name: str,
    *,
    config: AnalysisConfig | None = None,
) -> Stratification:
    """Stratify on any covariate, dispatching on its kind."""
    cfg = resolve_config(config)
    if not cohort.has_covariate(name):
        raise InvalidCovariate(
            f"cohort has no covariate {name!r}", covariate=name,
        )
    if cohort.kind(name) is CovariateKind.NUMERIC:
        return threshold_split(
            cohort, name,
            quantile=cfg.threshold_quantile,
            high_label=cfg.high_label,
            low_label=cfg.low_label,
        )
    return category_split(cohort, name)


def cross_product(
    a: Mapping[Hashable, str],
    b: Mapping[Hashable, str],
    *,
    names: tuple[str, str] | None = None,
) -> Stratification:
    """Combine two labelings into composite labels.

    Subjects missing either label are dropped. Composite levels follow the
    product of the component level orders.

    Parameters
    ----------
    a, b : Stratification or Mapping[id, label]
    names : (str, str) or None
        Component names for plain mappings. Defaults to the covariate names
        of Stratification inputs, else ("A", "B").
    """
    name_a, name_b = names if names is not None else (
        a.covariate if isinstance(a, Stratification) else "A",
        b.covariate if isinstance(b, Stratification) else "B",
    )
    levels_a = _levels_of(a)
    levels_b = _levels_of(b)

    labels = {
        sid: composite_label(((name_a, la), (name_b, b[sid])))
        for sid, la in a.items()
        if sid in b
    }
    possible = [
        composite_label(((name_a, la), (name_b, lb)))
        for la in levels_a
        for lb in levels_b
    ]
    return Stratification(
        labels,
        covariate=f"{name_a} x {name_b}",
        levels=possible,
        components=(name_a, name_b),
    )


def _levels_of(labeling: Mapping[Hashable, str]) -> tuple[str, ...]:
    if isinstance(labeling, Stratification):
        return labeling.possible_levels
    return tuple(sorted(set(labeling.values())))
