import pytest

from wcrp.config import ONE_MINUS_TOL, TOL
from wcrp.parameters import (
    BKTParam,
    BKTParameters,
    draw_bkt_param_prior,
    predict_correct,
    update_belief,
)
from wcrp.random_source import RandomSource


def test_prior_draws_in_bounds():
    generator = RandomSource(0)
    for _ in range(500):
        params = draw_bkt_param_prior(generator)
        assert params.is_valid()
        for param in BKTParam:
            assert TOL <= param.get(params) <= ONE_MINUS_TOL
        assert params.pi0 <= params.pi1


def test_param_accessors():
    params = BKTParameters(psi=0.1, mu=0.2, pi1=0.8, prop0=0.5)
    assert params.pi0 == pytest.approx(0.4)
    BKTParam.MU.set(params, 0.35)
    assert BKTParam.MU.get(params) == 0.35
    assert params.mu == 0.35


def test_copy_is_independent():
    params = BKTParameters(psi=0.1, mu=0.2, pi1=0.8, prop0=0.5)
    clone = params.copy()
    clone.psi = 0.9
    assert params.psi == 0.1


def test_predict_correct():
    params = BKTParameters(psi=0.3, mu=0.1, pi1=0.9, prop0=0.2)
    assert predict_correct(0.0, params) == pytest.approx(0.18)
    assert predict_correct(1.0, params) == pytest.approx(0.9)
    assert predict_correct(0.5, params) == pytest.approx(0.54)


@pytest.mark.parametrize("correct", [True, False])
def test_update_belief_is_posterior_then_learning(correct):
    params = BKTParameters(psi=0.3, mu=0.1, pi1=0.9, prop0=0.2)
    p = 0.3
    like_mastered = params.pi1 if correct else 1.0 - params.pi1
    like_unmastered = params.pi0 if correct else 1.0 - params.pi0
    posterior = like_mastered * p / (like_mastered * p + like_unmastered * (1.0 - p))
    expected = posterior + params.mu * (1.0 - posterior)
    assert update_belief(p, correct, params) == pytest.approx(expected)


def test_correct_response_raises_belief():
    params = BKTParameters(psi=0.3, mu=0.1, pi1=0.9, prop0=0.2)
    assert update_belief(0.3, True, params) > 0.3
    assert update_belief(0.3, False, params) < 0.3
