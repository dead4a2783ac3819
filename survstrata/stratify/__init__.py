"""
Group labelling.

Public API:
    threshold_split(cohort, name) -> Stratification
    category_split(cohort, name) -> Stratification
    stratify(cohort, name) -> Stratification
    cross_product(a, b) -> Stratification
"""

from survstrata.stratify._labels import Stratification, composite_label
from survstrata.stratify.stratifier import (
    category_split,
    cross_product,
    stratify,
    threshold_split,
)

__all__ = [
    "Stratification",
    "composite_label",
    "category_split",
    "cross_product",
    "stratify",
    "threshold_split",
]
