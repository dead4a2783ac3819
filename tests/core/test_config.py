"""
Tests for AnalysisConfig and resolve_config.
"""

import dataclasses

import pytest

from survstrata.core.config import DEFAULT_CONFIG, AnalysisConfig, resolve_config
from survstrata.core.exceptions import ValidationError


class TestDefaults:

    def test_median_split_inclusive_high(self):
        cfg = AnalysisConfig()
        assert cfg.threshold_quantile == 0.5
        assert cfg.high_label == "High"
        assert cfg.low_label == "Low"

    def test_cox_defaults(self):
        cfg = AnalysisConfig()
        assert cfg.ties == "breslow"
        assert cfg.cox_tol == 1e-9
        assert cfg.cox_max_iter == 20

    def test_viability_defaults(self):
        cfg = AnalysisConfig()
        assert cfg.min_events == 1
        assert cfg.require_full_cross is True
        assert cfg.n_jobs == 1

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CONFIG.min_events = 3


class TestValidation:

    @pytest.mark.parametrize("changes", [
        {"threshold_quantile": 0.0},
        {"threshold_quantile": 1.0},
        {"conf_level": 1.5},
        {"duplicate_threshold": 1.01},
        {"high_label": "Low"},
        {"min_events": -1},
        {"cox_tol": 0.0},
        {"cox_max_iter": 0},
        {"ties": "exact"},
        {"conf_type": "arcsin"},
        {"rho": -1.0},
        {"n_jobs": 0},
    ])
    def test_rejected(self, changes):
        with pytest.raises(ValidationError):
            AnalysisConfig(**changes)

    def test_replace_revalidates(self):
        with pytest.raises(ValidationError):
            DEFAULT_CONFIG.replace(ties="bogus")

    def test_replace_returns_copy(self):
        cfg = DEFAULT_CONFIG.replace(min_events=5)
        assert cfg.min_events == 5
        assert DEFAULT_CONFIG.min_events == 1


class TestResolveConfig:

    def test_none_gives_default(self):
        assert resolve_config(None) is DEFAULT_CONFIG

    def test_none_overrides_ignored(self):
        cfg = AnalysisConfig(min_events=3)
        assert resolve_config(cfg, ties=None, cox_tol=None) is cfg

    def test_overrides_applied(self):
        cfg = resolve_config(AnalysisConfig(min_events=3), ties="efron")
        assert cfg.ties == "efron"
        assert cfg.min_events == 3
