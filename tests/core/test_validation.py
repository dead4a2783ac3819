"""
Tests for input validators.
"""

import numpy as np
import pytest

from survstrata.core.exceptions import DimensionError, ValidationError
from survstrata.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_event_indicator,
    check_probability,
    check_unique,
)


class TestCheckArray:

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "x")
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_bool_promoted_to_float(self):
        result = check_array([True, False], "event")
        np.testing.assert_array_equal(result, [1.0, 0.0])

    def test_object_numbers_converted(self):
        result = check_array(np.array([1, 2.5, np.nan], dtype=object), "time")
        assert result.dtype == np.float64
        assert np.isnan(result[2])

    def test_rejects_strings(self):
        with pytest.raises(ValidationError, match="time"):
            check_array(["a", "b"], "time")

    def test_rejects_mixed_types(self):
        with pytest.raises(ValidationError, match="event"):
            check_array(np.array([1, "x"], dtype=object), "event")


class TestCheckShape:

    def test_check_1d_passes(self):
        check_1d(np.zeros(3), "x")

    def test_check_1d_rejects_2d(self):
        with pytest.raises(DimensionError, match="expected 1D"):
            check_1d(np.zeros((3, 2)), "x")

    def test_same_length_passes(self):
        check_consistent_length(np.zeros(3), np.ones(3), names=("a", "b"))

    def test_different_length_raises(self):
        with pytest.raises(DimensionError, match="a=3, b=4"):
            check_consistent_length(np.zeros(3), np.ones(4), names=("a", "b"))

    def test_wrong_number_of_names(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.zeros(3), np.ones(3), names=("a",))


class TestEventIndicator:

    def test_zero_one_passes(self):
        check_event_indicator(np.array([0.0, 1.0, 1.0]))

    def test_nan_allowed(self):
        check_event_indicator(np.array([0.0, np.nan, 1.0]))

    def test_other_values_rejected(self):
        with pytest.raises(ValidationError, match="only 0 and 1"):
            check_event_indicator(np.array([0.0, 2.0]))


class TestUniqueAndProbability:

    def test_unique_passes(self):
        check_unique(np.array(["a", "b"], dtype=object), "ids")

    def test_duplicates_listed(self):
        with pytest.raises(ValidationError, match="'a'"):
            check_unique(np.array(["a", "b", "a"], dtype=object), "ids")

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.1, 1.1])
    def test_open_interval(self, value):
        with pytest.raises(ValidationError):
            check_probability(value, "p")

    @pytest.mark.parametrize("value", [0.0, 1.0])
    def test_inclusive_bounds(self, value):
        check_probability(value, "p", inclusive=True)
