"""BKT parameterization of a single skill."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .config import ONE_MINUS_TOL, TOL

if TYPE_CHECKING:
    from .random_source import RandomSource


@dataclass
class BKTParameters:
    """BKT parameters for one skill.

    - psi: probability the skill is mastered before the first trial
    - mu: probability of learning the skill after a trial
    - pi1: P(correct | mastered)
    - prop0: pi0 / pi1, so that P(correct | unmastered) never exceeds pi1
    """

    psi: float
    mu: float
    pi1: float
    prop0: float

    @property
    def pi0(self) -> float:
        return self.pi1 * self.prop0

    def copy(self) -> BKTParameters:
        return BKTParameters(self.psi, self.mu, self.pi1, self.prop0)

    def is_valid(self) -> bool:
        return all(0.0 < v < 1.0 for v in (self.psi, self.mu, self.pi1, self.prop0))


class BKTParam(Enum):
    """The four independently sampled BKT parameters."""

    PSI = "psi"
    MU = "mu"
    PI1 = "pi1"
    PROP0 = "prop0"

    def get(self, params: BKTParameters) -> float:
        return getattr(params, self.value)

    def set(self, params: BKTParameters, value: float) -> None:
        setattr(params, self.value, value)


def draw_bkt_param_prior(generator: RandomSource) -> BKTParameters:
    """Draw each BKT parameter uniformly at random on [TOL, 1 - TOL]."""
    width = ONE_MINUS_TOL - TOL
    psi = TOL + width * generator.uniform01()
    mu = TOL + width * generator.uniform01()
    pi1 = TOL + width * generator.uniform01()
    prop0 = TOL + width * generator.uniform01()
    return BKTParameters(psi=psi, mu=mu, pi1=pi1, prop0=prop0)


def predict_correct(p_hat: float, params: BKTParameters) -> float:
    """Probability of a correct response given the current mastery belief."""
    return params.pi0 * (1.0 - p_hat) + params.pi1 * p_hat


def update_belief(p_hat: float, correct: bool, params: BKTParameters) -> float:
    """Condition the mastery belief on one response, then apply learning."""
    pi1 = params.pi1
    pi0 = params.pi0
    mu = params.mu
    not_p = 1.0 - p_hat
    if correct:
        return (pi1 * p_hat + mu * pi0 * not_p) / (pi1 * p_hat + pi0 * not_p)
    return ((1.0 - pi1) * p_hat + mu * (1.0 - pi0) * not_p) / (
        (1.0 - pi1) * p_hat + (1.0 - pi0) * not_p
    )
