"""
Tests for p_adjust() matching R p.adjust().

R reference values computed in R 4.5.2 with digits=17.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from survstrata.batch import p_adjust
from survstrata.core.exceptions import ValidationError


PV1 = np.array([0.001, 0.01, 0.05, 0.1, 0.5, 0.9])

R_HOLM_1 = np.array([0.006, 0.05, 0.2, 0.3, 1.0, 1.0])
R_HOCHBERG_1 = np.array([0.006, 0.05, 0.2, 0.3, 0.9, 0.9])
R_BH_1 = np.array([0.006, 0.03, 0.1, 0.15, 0.6, 0.9])
R_BY_1 = np.array([0.0147, 0.0735, 0.245, 0.3675, 1.0, 1.0])
R_BONFERRONI_1 = np.array([0.006, 0.06, 0.3, 0.6, 1.0, 1.0])

PV2 = np.array([0.01, 0.04, 0.03, 0.005])

R_HOLM_2 = np.array([0.03, 0.06, 0.06, 0.02])
R_BH_2 = np.array([0.02, 0.04, 0.04, 0.02])


class TestPAdjustMethods:

    @pytest.mark.parametrize("method, expected", [
        ("holm", R_HOLM_1),
        ("hochberg", R_HOCHBERG_1),
        ("BH", R_BH_1),
        ("fdr", R_BH_1),
        ("BY", R_BY_1),
        ("bonferroni", R_BONFERRONI_1),
    ])
    def test_against_r(self, method, expected):
        assert_allclose(p_adjust(PV1, method=method), expected, rtol=1e-10)

    def test_unsorted_input(self):
        assert_allclose(p_adjust(PV2, method="holm"), R_HOLM_2, rtol=1e-10)
        assert_allclose(p_adjust(PV2, method="BH"), R_BH_2, rtol=1e-10)

    def test_none(self):
        assert_allclose(p_adjust(PV1, method="none"), PV1)

    def test_default_is_holm(self):
        assert_allclose(p_adjust(PV1), R_HOLM_1, rtol=1e-10)


class TestPAdjustNParameter:

    def test_holm_n_larger(self):
        """p.adjust(c(0.01, 0.05), method='holm', n=10)."""
        assert_allclose(p_adjust([0.01, 0.05], method="holm", n=10),
                        [0.1, 0.45], rtol=1e-10)

    def test_bh_n_larger(self):
        """p.adjust(c(0.01, 0.05), method='BH', n=10)."""
        assert_allclose(p_adjust([0.01, 0.05], method="BH", n=10),
                        [0.1, 0.25], rtol=1e-10)

    def test_n_too_small(self):
        with pytest.raises(ValidationError, match="n"):
            p_adjust([0.01, 0.05], method="holm", n=1)


class TestPAdjustMissing:
    """Unavailable tests (NaN) stay NaN and are not counted."""

    def test_nan_preserved_and_not_counted(self):
        """p.adjust(c(0.01, NA, 0.05), method='holm') gives 0.02, NA, 0.05."""
        result = p_adjust([0.01, np.nan, 0.05], method="holm")
        assert np.isnan(result[1])
        assert_allclose(result[[0, 2]], [0.02, 0.05], rtol=1e-10)

    def test_all_nan(self):
        assert np.all(np.isnan(p_adjust([np.nan, np.nan], method="BH")))

    def test_empty(self):
        assert len(p_adjust([], method="holm")) == 0


class TestPAdjustEdgeCases:

    @pytest.mark.parametrize("method", ["holm", "hochberg", "BH", "BY", "bonferroni"])
    def test_single_pvalue_unchanged(self, method):
        assert p_adjust([0.05], method=method)[0] == pytest.approx(0.05)

    def test_clipped_to_one(self):
        assert np.all(p_adjust([0.5, 0.5, 0.5], method="bonferroni") <= 1.0)

    def test_invalid_method(self):
        with pytest.raises(ValidationError, match="method"):
            p_adjust([0.05], method="hommel")
