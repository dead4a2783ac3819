"""
Tests for the candidate covariate exclusion rule.
"""

import logging

import numpy as np

from survstrata.batch import exclude_covariates
from survstrata.cohort import SubjectCohort


def make_cohort(rng, n=50):
    primary = rng.standard_normal(n)
    return SubjectCohort.from_arrays(
        list(range(n)), rng.exponential(5, n), np.ones(n),
        {
            "PRIMARY": primary,
            "GENE": rng.standard_normal(n),
            "NEG_COPY": -3.0 * primary,
            "NOISY_COPY": primary + rng.normal(0, 0.5, n),
            "CONST": np.ones(n),
            "SEX": ["M", "F"] * (n // 2),
        },
    )


class TestExcludeCovariates:

    def test_independent_kept(self, rng):
        kept, skipped = exclude_covariates(make_cohort(rng), "PRIMARY",
                                           ["GENE", "SEX"])
        assert kept == ("GENE", "SEX")
        assert skipped == ()

    def test_unknown(self, rng):
        kept, skipped = exclude_covariates(make_cohort(rng), "PRIMARY",
                                           ["GENE", "NOPE"])
        assert kept == ("GENE",)
        assert skipped[0].key == "NOPE"
        assert skipped[0].reason == "UnknownCovariate"

    def test_primary_listed(self, rng):
        _, skipped = exclude_covariates(make_cohort(rng), "PRIMARY", ["PRIMARY"])
        assert skipped[0].reason == "DuplicateCovariate"
        assert "primary" in skipped[0].message

    def test_repeated_candidate(self, rng):
        kept, skipped = exclude_covariates(make_cohort(rng), "PRIMARY",
                                           ["GENE", "GENE"])
        assert kept == ("GENE",)
        assert len(skipped) == 1
        assert skipped[0].reason == "DuplicateCovariate"

    def test_perfect_negative_correlation(self, rng):
        _, skipped = exclude_covariates(make_cohort(rng), "PRIMARY", ["NEG_COPY"])
        assert skipped[0].reason == "DuplicateCovariate"
        assert "|r|" in skipped[0].message

    def test_correlated_but_distinct_kept(self, rng):
        kept, _ = exclude_covariates(make_cohort(rng), "PRIMARY", ["NOISY_COPY"])
        assert kept == ("NOISY_COPY",)

    def test_threshold(self, rng):
        _, skipped = exclude_covariates(make_cohort(rng), "PRIMARY",
                                        ["NOISY_COPY"], threshold=0.5)
        assert skipped[0].key == "NOISY_COPY"

    def test_constant_left_for_stratifier(self, rng):
        kept, _ = exclude_covariates(make_cohort(rng), "PRIMARY", ["CONST"])
        assert kept == ("CONST",)

    def test_order_preserved(self, rng):
        kept, skipped = exclude_covariates(
            make_cohort(rng), "PRIMARY",
            ["SEX", "NOPE", "GENE", "NEG_COPY", "CONST"],
        )
        assert kept == ("SEX", "GENE", "CONST")
        assert [s.key for s in skipped] == ["NOPE", "NEG_COPY"]

    def test_logged(self, rng, caplog):
        with caplog.at_level(logging.INFO, logger="survstrata"):
            exclude_covariates(make_cohort(rng), "PRIMARY", ["NOPE"])
        assert "Excluding covariate NOPE" in caplog.text
