"""
pytest configuration and shared fixtures.
"""

import numpy as np
import pytest

from survstrata.cohort import SubjectCohort


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


def exponential_cohort(rng, n, *, rate=0.1, censor_rate=0.03, covariates=None,
                       id_prefix="s"):
    """Exponential event times with independent exponential censoring."""
    t_event = rng.exponential(1.0 / rate, n)
    t_censor = rng.exponential(1.0 / censor_rate, n)
    time = np.minimum(t_event, t_censor)
    event = (t_event <= t_censor).astype(np.float64)
    ids = [f"{id_prefix}{i}" for i in range(n)]
    return SubjectCohort.from_arrays(ids, time, event, covariates or {})


@pytest.fixture
def gene_cohort(rng):
    """200 subjects, a primary expression covariate and assorted candidates.

    GENE1/GENE2 are independent of the primary, CONST1/CONST2 are constant,
    DUP is a linear copy of the primary and SEX is categorical.
    """
    n = 200
    primary = rng.standard_normal(n)
    covariates = {
        "PRIMARY": primary,
        "GENE1": rng.standard_normal(n),
        "GENE2": rng.standard_normal(n),
        "CONST1": np.full(n, 5.0),
        "CONST2": np.zeros(n),
        "DUP": 2.0 * primary + 1.0,
        "SEX": np.array(["M", "F"] * (n // 2), dtype=object),
    }
    return exponential_cohort(rng, n, covariates=covariates)
