import math

import numpy as np
import pytest
from scipy import stats

from wcrp.random_source import RandomSource
from wcrp.slice_sampler import slice_sample


def _beta_3_5(x):
    return 2.0 * math.log(x) + 4.0 * math.log(1.0 - x)


def test_matches_beta_moments():
    generator = RandomSource(11)
    lower, upper = 1e-6, 1.0 - 1e-6
    x = 0.5
    lp = _beta_3_5(x)
    draws = []
    for _ in range(6000):
        x, lp = slice_sample(generator, x, lp, _beta_3_5, lower, upper, 0.1)
        draws.append(x)
    draws = np.array(draws[500:])

    target = stats.beta(3, 5)
    assert draws.min() >= lower and draws.max() <= upper
    assert draws.mean() == pytest.approx(target.mean(), abs=0.02)
    assert draws.var() == pytest.approx(target.var(), abs=0.006)


def test_returns_log_density_of_new_value():
    generator = RandomSource(12)
    x, lp = slice_sample(generator, 0.3, _beta_3_5(0.3), _beta_3_5, 1e-6, 1.0 - 1e-6, 0.1)
    assert lp == pytest.approx(_beta_3_5(x))


def test_wide_bracket_on_narrow_support():
    generator = RandomSource(13)

    def log_density(v):
        return -0.5 * ((v - 0.2) / 0.01) ** 2

    x, lp = 0.2, 0.0
    for _ in range(200):
        x, lp = slice_sample(generator, x, lp, log_density, 0.0, 1.0, 5.0)
        assert 0.0 <= x <= 1.0
