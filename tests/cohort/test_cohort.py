"""
Tests for SubjectCohort construction, eligibility and views.
"""

import numpy as np
import pandas as pd
import pytest

from survstrata.cohort import CovariateKind, SubjectCohort, SubjectRecord
from survstrata.core.exceptions import DimensionError, ValidationError


def small_cohort():
    return SubjectCohort.from_arrays(
        ["a", "b", "c", "d"],
        [5.0, 10.0, 15.0, 20.0],
        [1, 0, 1, 0],
        {"GENE": [0.1, 0.4, np.nan, 0.9], "SEX": ["M", "F", "M", None]},
    )


class TestConstruction:

    def test_basic(self):
        c = small_cohort()
        assert c.n == 4
        assert len(c) == 4
        assert c.n_events == 2
        assert c.event.dtype == bool
        np.testing.assert_array_equal(c.time, [5.0, 10.0, 15.0, 20.0])
        assert list(c.ids) == ["a", "b", "c", "d"]

    def test_kind_inference(self):
        c = small_cohort()
        assert c.kind("GENE") is CovariateKind.NUMERIC
        assert c.kind("SEX") is CovariateKind.CATEGORICAL

    def test_missing_values(self):
        c = small_cohort()
        assert np.isnan(c.covariate("GENE")[2])
        assert c.covariate("SEX")[3] is None
        np.testing.assert_array_equal(c.column("GENE").missing,
                                      [False, False, True, False])

    def test_explicit_kind(self):
        c = SubjectCohort.from_arrays(
            None, [1.0, 2.0], [1, 1], {"STAGE": [1, 2]},
            kinds={"STAGE": "categorical"},
        )
        assert c.kind("STAGE") is CovariateKind.CATEGORICAL
        assert list(c.covariate("STAGE")) == ["1", "2"]

    def test_default_ids(self):
        c = SubjectCohort.from_arrays(None, [1.0, 2.0, 3.0], [1, 0, 1])
        assert list(c.ids) == [0, 1, 2]

    def test_arrays_read_only(self):
        c = small_cohort()
        with pytest.raises(ValueError):
            c.time[0] = 99.0


class TestEligibility:
    """Records without positive finite time or known event are dropped."""

    def test_nonpositive_and_missing_dropped(self):
        c = SubjectCohort.from_arrays(
            ["a", "b", "c", "d", "e"],
            [0.0, -1.0, np.nan, np.inf, 3.0],
            [1, 1, 1, 1, 1],
        )
        assert list(c.ids) == ["e"]

    def test_missing_event_dropped(self):
        c = SubjectCohort.from_arrays(["a", "b"], [1.0, 2.0], [np.nan, 1])
        assert list(c.ids) == ["b"]

    def test_dropped_ids_may_repeat(self):
        c = SubjectCohort.from_arrays(["a", "a"], [0.0, 2.0], [1, 1])
        assert list(c.ids) == ["a"]

    def test_dropping_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="survstrata"):
            SubjectCohort.from_arrays(["a", "b"], [0.0, 2.0], [1, 1])
        assert "Excluded 1 of 2" in caplog.text

    def test_all_ineligible_gives_empty(self):
        c = SubjectCohort.from_arrays(["a"], [0.0], [1])
        assert c.n == 0


class TestValidation:

    def test_duplicate_ids(self):
        with pytest.raises(ValidationError, match="duplicate"):
            SubjectCohort.from_arrays(["a", "a"], [1.0, 2.0], [1, 0])

    def test_bad_event(self):
        with pytest.raises(ValidationError, match="only 0 and 1"):
            SubjectCohort.from_arrays(["a", "b"], [1.0, 2.0], [1, 2])

    def test_length_mismatch(self):
        with pytest.raises(DimensionError):
            SubjectCohort.from_arrays(["a", "b"], [1.0, 2.0], [1])

    def test_covariate_length(self):
        with pytest.raises(ValidationError, match="GENE"):
            SubjectCohort.from_arrays(["a", "b"], [1.0, 2.0], [1, 0],
                                      {"GENE": [1.0]})

    def test_kind_for_unknown_covariate(self):
        with pytest.raises(ValidationError, match="unknown covariates"):
            SubjectCohort.from_arrays(["a"], [1.0], [1], kinds={"X": "numeric"})

    def test_declared_numeric_with_strings(self):
        with pytest.raises(ValidationError, match="declared numeric"):
            SubjectCohort.from_arrays(["a"], [1.0], [1], {"X": ["high"]},
                                      kinds={"X": "numeric"})


class TestFactories:

    def test_from_records(self):
        records = [
            SubjectRecord("a", 5.0, True, {"GENE": 1.0}),
            {"id": "b", "time": 7.0, "event": 0, "covariates": {"GENE": 2.0}},
            {"id": "c", "time": 9.0, "event": 1},
        ]
        c = SubjectCohort.from_records(records)
        assert list(c.ids) == ["a", "b", "c"]
        assert c.kind("GENE") is CovariateKind.NUMERIC
        assert np.isnan(c.covariate("GENE")[2])

    def test_from_records_missing_key(self):
        with pytest.raises(ValidationError, match="'time'"):
            SubjectCohort.from_records([{"id": "a", "event": 1}])

    def test_from_dataframe(self):
        df = pd.DataFrame({
            "time": [1.0, 2.0, 3.0],
            "event": [1, 0, 1],
            "GENE": [0.5, None, 1.5],
            "SEX": ["M", "F", None],
        }, index=["p1", "p2", "p3"])
        c = SubjectCohort.from_dataframe(df)
        assert list(c.ids) == ["p1", "p2", "p3"]
        assert c.kind("GENE") is CovariateKind.NUMERIC
        assert c.kind("SEX") is CovariateKind.CATEGORICAL
        assert np.isnan(c.covariate("GENE")[1])
        assert c.covariate("SEX")[2] is None

    def test_from_dataframe_id_col(self):
        df = pd.DataFrame({"pid": ["x", "y"], "os": [1.0, 2.0],
                           "dead": [1, 1], "GENE": [0.0, 1.0]})
        c = SubjectCohort.from_dataframe(df, time_col="os", event_col="dead",
                                         id_col="pid")
        assert list(c.ids) == ["x", "y"]
        assert c.covariate_names == ("GENE",)

    def test_from_dataframe_missing_column(self):
        df = pd.DataFrame({"time": [1.0]})
        with pytest.raises(ValidationError, match="event"):
            SubjectCohort.from_dataframe(df)


class TestViews:

    def test_subset_mask(self):
        c = small_cohort()
        sub = c.subset(c.event)
        assert list(sub.ids) == ["a", "c"]
        assert sub.n_events == 2

    def test_subset_bad_mask(self):
        with pytest.raises(ValidationError):
            small_cohort().subset(np.array([True, False]))

    def test_select_preserves_order(self):
        sub = small_cohort().select(["d", "a", "zzz"])
        assert list(sub.ids) == ["a", "d"]

    def test_where_categorical(self):
        sub = small_cohort().where("SEX", "M")
        assert list(sub.ids) == ["a", "c"]

    def test_where_numeric(self):
        sub = small_cohort().where("GENE", [0.4, 0.9])
        assert list(sub.ids) == ["b", "d"]

    def test_filter(self):
        sub = small_cohort().filter(lambda r: r.time > 8)
        assert list(sub.ids) == ["b", "c", "d"]

    def test_views_share_store(self):
        c = small_cohort()
        sub = c.subset([0, 1])
        np.testing.assert_array_equal(sub.covariate("GENE"), [0.1, 0.4])

    def test_nested_views(self):
        sub = small_cohort().where("SEX", "M").filter(lambda r: r.event)
        assert list(sub.ids) == ["a", "c"]
        assert "c" in sub
        assert "b" not in sub

    def test_unknown_covariate(self):
        with pytest.raises(KeyError, match="NOPE"):
            small_cohort().column("NOPE")


class TestRecords:

    def test_getitem(self):
        r = small_cohort()[1]
        assert r.id == "b"
        assert r.time == 10.0
        assert r.event is False
        assert r.covariates["SEX"] == "F"

    def test_iteration(self):
        assert [r.id for r in small_cohort()] == ["a", "b", "c", "d"]

    def test_repr(self):
        assert "n=4" in repr(small_cohort())
