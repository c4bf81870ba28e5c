"""Configuration for the WCRP skill discovery sampler."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# BKT parameters are kept inside [TOL, 1 - TOL]; BKT breaks down at exactly 0 or 1
TOL = 1e-5
ONE_MINUS_TOL = 1.0 - TOL

# Gamma(shape, scale) prior on alpha'
HYPER_AP1 = 1.0
HYPER_AP2 = 10.0

# Slice sampling bounds for the log-parameterized WCRP hyperparameters
LOG_ALPHA_PRIME_BOUNDS = (-10.0, 11.0)
LOG_GAMMA_BOUNDS = (-8.0, 0.0)
HYPER_BRACKET_WIDTH = 0.25
BKT_BRACKET_WIDTH = (ONE_MINUS_TOL - TOL) / 10.0


@dataclass
class WCRPConfig:
    """Configuration for a WCRP run."""

    # Paths
    data_path: Path = field(default_factory=lambda: Path("data/dataset.txt"))
    fold_path: Optional[Path] = None
    output_path: Path = field(default_factory=lambda: Path("results/wcrp_predictions.tsv"))

    # Model parameters
    init_beta: float = 0.0
    fixed_alpha_prime: Optional[float] = None  # None -> infer alpha'
    infer_beta: bool = False

    # Sampler parameters
    num_iterations: int = 200
    burn: int = 100
    num_subsamples: int = 2000
    random_seed: Optional[int] = None

    # Generated splits (used only when fold_path is None)
    num_folds: int = 1
    num_replications: int = 1

    # Output
    dump_skills: bool = False
    plot_traces: bool = False
    threshold: float = 0.5

    @property
    def infer_alpha_prime(self) -> bool:
        return self.fixed_alpha_prime is None

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot produce a valid chain."""
        if not 0.0 <= self.init_beta <= 1.0:
            raise ValueError(f"init_beta must lie in [0, 1], got {self.init_beta}")
        if self.fixed_alpha_prime is not None and self.fixed_alpha_prime <= 0.0:
            raise ValueError(f"fixed_alpha_prime must be positive, got {self.fixed_alpha_prime}")
        if self.burn < 0 or self.num_iterations <= self.burn:
            raise ValueError(
                f"num_iterations ({self.num_iterations}) must exceed burn ({self.burn})"
            )
        if self.num_subsamples < 1:
            raise ValueError(f"num_subsamples must be at least 1, got {self.num_subsamples}")
        if self.num_folds < 1 or self.num_replications < 1:
            raise ValueError("num_folds and num_replications must be at least 1")
