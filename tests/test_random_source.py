import math

import numpy as np
import pytest

from wcrp.random_source import RandomSource


def test_uniform01_open_interval():
    generator = RandomSource(1)
    draws = [generator.uniform01() for _ in range(5000)]
    assert all(0.0 < u < 1.0 for u in draws)


def test_same_seed_same_stream():
    a = RandomSource(7)
    b = RandomSource(7)
    assert [a.uniform01() for _ in range(10)] == [b.uniform01() for _ in range(10)]


def test_log_discrete_never_draws_zero_weight():
    generator = RandomSource(2)
    for _ in range(200):
        assert generator.unnormalized_log_discrete([-math.inf, 0.0, -math.inf]) == 1


def test_log_discrete_frequencies():
    generator = RandomSource(3)
    # unnormalized and shifted far from zero
    log_weights = np.log([1.0, 3.0]) - 800.0
    draws = [generator.unnormalized_log_discrete(log_weights) for _ in range(20000)]
    assert np.mean(draws) == pytest.approx(0.75, abs=0.02)


def test_log_discrete_rejects_degenerate_input():
    generator = RandomSource(4)
    with pytest.raises(ValueError):
        generator.unnormalized_log_discrete([])
    with pytest.raises(RuntimeError):
        generator.unnormalized_log_discrete([-math.inf, -math.inf])


def test_shuffle_is_permutation():
    generator = RandomSource(5)
    values = list(range(20))
    generator.shuffle(values)
    assert sorted(values) == list(range(20))
