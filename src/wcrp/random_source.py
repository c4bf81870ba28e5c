"""Random number source threaded through every sampling call."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import numpy as np
from scipy.special import logsumexp


class RandomSource:
    """Thin wrapper around a numpy Generator.

    One instance drives one Markov chain. It is passed explicitly to the
    sampler and never stored as module state.
    """

    def __init__(self, seed: Optional[Union[int, np.random.SeedSequence]] = None):
        self.rng = np.random.default_rng(seed)

    def uniform01(self) -> float:
        """Uniform draw on the open interval (0, 1)."""
        u = self.rng.random()
        while u == 0.0:
            u = self.rng.random()
        return float(u)

    def gamma(self, shape: float, scale: float) -> float:
        return float(self.rng.gamma(shape, scale))

    def unnormalized_log_discrete(self, log_weights: Sequence[float]) -> int:
        """Draw an index with probability proportional to exp(log_weights)."""
        log_weights = np.asarray(log_weights, dtype=float)
        if log_weights.size == 0:
            raise ValueError("Cannot sample from an empty set of outcomes")
        log_norm = logsumexp(log_weights)
        if not np.isfinite(log_norm):
            raise RuntimeError("All outcomes have zero probability")
        cdf = np.cumsum(np.exp(log_weights - log_norm))
        idx = int(np.searchsorted(cdf, self.rng.random() * cdf[-1], side="right"))
        return min(idx, log_weights.size - 1)

    def shuffle(self, values: List) -> None:
        """Shuffle a list in place."""
        self.rng.shuffle(values)
