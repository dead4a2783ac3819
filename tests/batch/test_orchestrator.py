"""
Tests for the batch orchestrator: run_single, run_batch, run_subsets.

The gene_cohort fixture (tests/conftest.py) has a numeric PRIMARY, two
independent numeric candidates, two constant candidates, a linear copy of
PRIMARY (DUP) and a categorical SEX.
"""

import types

import numpy as np
import pandas as pd
import pytest

from survstrata.batch import (
    BatchSolution,
    UnitResult,
    WorkItem,
    apply_subset,
    iter_work_items,
    run_batch,
    run_single,
    run_subsets,
)
from survstrata.batch.solution import RECORD_COLUMNS
from survstrata.cohort import SubjectCohort
from survstrata.core.config import AnalysisConfig
from survstrata.core.exceptions import (
    EmptyCohort,
    InvalidCovariate,
    UnknownCovariate,
    ValidationError,
)
from survstrata.stratify import threshold_split

CANDIDATES = ["GENE1", "GENE2", "CONST1", "CONST2", "DUP", "NOPE", "PRIMARY", "SEX"]


class TestRunSingle:

    def test_two_groups(self, gene_cohort):
        unit = run_single(gene_cohort, "PRIMARY")
        assert isinstance(unit, UnitResult)
        assert unit.key == "PRIMARY"
        assert unit.levels == ("High", "Low")
        assert set(unit.curves) == {"High", "Low"}
        assert len(unit.comparisons) == 1

    def test_curves_cover_each_group(self, gene_cohort):
        unit = run_single(gene_cohort, "PRIMARY")
        counts = unit.stratification.counts()
        for level, km in unit.curves.items():
            assert km.n_observations == counts[level]

    def test_categorical(self, gene_cohort):
        unit = run_single(gene_cohort, "SEX")
        assert unit.levels == ("F", "M")
        assert len(unit.comparisons) == 1

    def test_errors_propagate(self, gene_cohort):
        with pytest.raises(InvalidCovariate):
            run_single(gene_cohort, "CONST1")


class TestRunBatch:

    def test_units_and_skips(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        assert isinstance(batch, BatchSolution)
        assert list(batch.units) == ["GENE1", "GENE2", "SEX"]
        assert batch.skip_reasons == {
            "DUP": "DuplicateCovariate",
            "NOPE": "UnknownCovariate",
            "PRIMARY": "DuplicateCovariate",
            "CONST1": "InvalidCovariate",
            "CONST2": "InvalidCovariate",
        }

    def test_every_candidate_accounted_for(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        assert len(batch) + len(batch.skipped) == len(CANDIDATES)

    def test_four_composite_groups_six_rows(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", ["GENE1", "SEX"])
        for key in ("GENE1", "SEX"):
            unit = batch.units[key]
            assert len(unit.levels) == 4
            assert len(batch[key]) == 6
        assert batch.units["GENE1"].stratification.covariate == "PRIMARY x GENE1"
        assert batch.units["SEX"].levels[0] == "PRIMARY=High, SEX=F"

    def test_primary_threshold_is_median(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", ["GENE1"])
        assert batch.info["primary_threshold"] == pytest.approx(
            np.median(gene_cohort.covariate("PRIMARY")))

    def test_info_and_timing(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", (c for c in ["GENE1", "GENE2"]))
        assert batch.info["n_candidates"] == 2
        assert len(batch) == 2
        assert batch.backend_name == "cpu_batch"
        for section in ("stratify_primary", "exclusion", "units", "total_seconds"):
            assert section in batch.timing

    def test_incomplete_cross(self, rng):
        n = 120
        primary = rng.standard_normal(n)
        cohort = SubjectCohort.from_arrays(
            list(range(n)), rng.exponential(10, n), rng.binomial(1, 0.8, n),
            {"PRIMARY": primary,
             "MIRROR": (primary >= np.median(primary)).astype(float)},
        )
        batch = run_batch(cohort, "PRIMARY", ["MIRROR"])
        assert batch.skip_reasons == {"MIRROR": "IncompleteStrata"}

        relaxed = run_batch(cohort, "PRIMARY", ["MIRROR"],
                            config=AnalysisConfig(require_full_cross=False))
        assert len(relaxed["MIRROR"]) == 1

    def test_empty_candidates(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", [])
        assert len(batch) == 0
        assert batch.skipped == ()

    def test_threaded_matches_sequential(self, gene_cohort):
        sequential = run_batch(gene_cohort, "PRIMARY", CANDIDATES, n_jobs=1)
        threaded = run_batch(gene_cohort, "PRIMARY", CANDIDATES, n_jobs=2)
        pd.testing.assert_frame_equal(sequential.to_dataframe(),
                                      threaded.to_dataframe())
        assert sequential.skipped == threaded.skipped


class TestRunBatchFatal:

    def test_empty_cohort(self):
        cohort = SubjectCohort.from_arrays(["a"], [0.0], [1], {"P": [1.0]})
        with pytest.raises(EmptyCohort):
            run_batch(cohort, "P", ["Q"])

    def test_unknown_primary(self, gene_cohort):
        with pytest.raises(UnknownCovariate):
            run_batch(gene_cohort, "NOPE", ["GENE1"])

    def test_constant_primary(self, gene_cohort):
        with pytest.raises(InvalidCovariate):
            run_batch(gene_cohort, "CONST1", ["GENE1"])


class TestRunSubsets:

    def test_threshold_recomputed_per_subset(self, gene_cohort):
        batch = run_subsets(gene_cohort, "PRIMARY", {
            "male": ("SEX", "M"),
            "female": ("SEX", "F"),
        })
        assert list(batch.units) == ["male", "female"]
        for name, sex in (("male", "M"), ("female", "F")):
            sub = gene_cohort.where("SEX", sex)
            unit = batch.units[name]
            assert unit.stratification.threshold == pytest.approx(
                np.median(sub.covariate("PRIMARY")))
            assert len(unit.stratification) == sub.n
            assert len(batch[name]) == 1

    def test_predicate_subset(self, gene_cohort):
        batch = run_subsets(gene_cohort, "PRIMARY",
                            {"early": lambda r: r.time < 20})
        expected = gene_cohort.filter(lambda r: r.time < 20)
        assert len(batch.units["early"].stratification) == expected.n

    def test_failed_subsets_skipped(self, gene_cohort):
        batch = run_subsets(gene_cohort, "PRIMARY", {
            "male": ("SEX", "M"),
            "nobody": ("SEX", "X"),
            "typo": ("SXE", "M"),
        })
        assert list(batch.units) == ["male"]
        assert batch.skip_reasons == {
            "nobody": "EmptyCohort",
            "typo": "UnknownCovariate",
        }

    def test_records_keyed_by_subset(self, gene_cohort):
        batch = run_subsets(gene_cohort, "PRIMARY", {"male": ("SEX", "M")})
        records = batch.to_records()
        assert records[0]["key"] == "male"
        assert records[0]["grouping"] == "PRIMARY"


class TestWorkItems:

    def test_lazy(self, gene_cohort):
        items = iter_work_items(gene_cohort, ["GENE1", "GENE2"])
        assert isinstance(items, types.GeneratorType)
        first = next(items)
        assert isinstance(first, WorkItem)
        assert (first.key, first.kind) == ("GENE1", "single")

    def test_cross_kind(self, gene_cohort):
        partner = threshold_split(gene_cohort, "PRIMARY")
        items = list(iter_work_items(gene_cohort, ["GENE1"], partner=partner))
        assert items[0].kind == "cross"
        assert items[0].partner is partner

    def test_subset_keys(self, gene_cohort):
        subsets = {"m": ("SEX", "M"), "f": ("SEX", "F")}
        single = [i.key for i in iter_work_items(gene_cohort, ["GENE1"],
                                                 subsets=subsets)]
        multi = [i.key for i in iter_work_items(gene_cohort, ["GENE1", "GENE2"],
                                                subsets=subsets)]
        assert single == ["m", "f"]
        assert multi == ["m/GENE1", "m/GENE2", "f/GENE1", "f/GENE2"]

    def test_apply_subset_bad_rule(self, gene_cohort):
        with pytest.raises(ValidationError, match="subset rule"):
            apply_subset(gene_cohort, "SEX")


class TestBatchSolution:

    def test_container_protocol(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        assert "GENE1" in batch
        assert "CONST1" not in batch
        assert len(batch) == 3
        assert batch["SEX"] is batch.results["SEX"]

    def test_to_dataframe(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        df = batch.to_dataframe()
        assert list(df.columns) == list(RECORD_COLUMNS)
        assert len(df) == 18
        assert list(df["key"].unique()) == ["GENE1", "GENE2", "SEX"]

    def test_adjusted_columns(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", ["GENE1", "GENE2"])
        df = batch.to_dataframe(adjust="BH")
        assert "logrank_p_adj" in df.columns
        assert "hr_p_adj" in df.columns
        assert np.all(df["logrank_p_adj"] >= df["logrank_p"] - 1e-15)

    def test_skipped_dataframe(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        skipped = batch.skipped_dataframe()
        assert list(skipped.columns) == ["key", "reason", "message"]
        assert len(skipped) == 5

    def test_summary_and_repr(self, gene_cohort):
        batch = run_batch(gene_cohort, "PRIMARY", CANDIDATES)
        s = batch.summary()
        assert "units analysed= 3" in s
        assert "Skipped:" in s
        assert "CONST1: InvalidCovariate" in s
        assert repr(batch) == "BatchSolution(units=3, skipped=5)"
