"""Weighted Chinese Restaurant Process seating equations.

The WCRP biases an ordinary CRP toward an expert-provided partition of
items. gamma = 1 - beta controls how strongly: gamma -> 0 reproduces the
expert labels, gamma = 1 ignores them.

Both hyperparameters are handled on the log scale (log alpha', log gamma).
"""

from __future__ import annotations

import math
from typing import Dict, Mapping, Sequence

from scipy.special import logsumexp

NO_SKILL = -1


def _log(x: float) -> float:
    return math.log(x) if x > 0.0 else -math.inf


def log_old_table_probability(
    num_seated: int,
    K: float,
    log_gamma: float,
    num_expert_provided_skills: int,
) -> float:
    """log of a quantity proportional to the probability of joining an existing table."""
    gamma = math.exp(log_gamma)
    n = float(num_expert_provided_skills)
    return (
        -math.log(n)
        + math.log(num_seated)
        + _log(K + (1.0 - K) * gamma)
        - math.log(1.0 / n + (1.0 - 1.0 / n) * gamma)
    )


def log_new_table_probability(
    log_alpha_prime: float,
    log_gamma: float,
    num_expert_provided_skills: int,
) -> float:
    """log of a quantity proportional to the probability of starting a new table."""
    return -math.log(num_expert_provided_skills) + log_alpha_prime + log_gamma


def k_from_counts(
    label_counts: Mapping[int, int],
    item_label: int,
    gamma: float,
    num_expert_provided_skills: int,
) -> float:
    """Expert label concordance of an item with a table.

    label_counts maps expert label -> number of items at the table
    carrying it. The item's own label is contrasted against the most
    common label at the table.
    """
    max_count = max(label_counts.values(), default=0)
    if item_label in label_counts:
        numerator = gamma ** (max_count - label_counts[item_label])
    else:
        numerator = gamma ** max_count
    denominator = (num_expert_provided_skills - len(label_counts)) * gamma ** max_count
    for count in label_counts.values():
        denominator += gamma ** (max_count - count)
    return numerator / denominator


def compute_K(
    item: int,
    table_id: int,
    generative_mode: bool,
    seating_arrangement: Sequence[int],
    provided_skill_assignments: Sequence[int],
    log_gamma: float,
    num_expert_provided_skills: int,
) -> float:
    """Concordance weight K of seating item at table_id.

    In generative mode only items with a smaller index are considered,
    which replays the order items sat down in. Otherwise every other
    item currently at the table counts; the item itself must already be
    unseated. Items without an expert label are not counted.
    """
    gamma = math.exp(log_gamma)
    end_idx = item if generative_mode else len(seating_arrangement)

    counts: Dict[int, int] = {}
    for other_item in range(end_idx):
        if other_item != item and seating_arrangement[other_item] == table_id:
            label = provided_skill_assignments[other_item]
            if label != NO_SKILL:
                counts[label] = counts.get(label, 0) + 1

    return k_from_counts(counts, provided_skill_assignments[item], gamma, num_expert_provided_skills)


def log_seating_prob(
    seating_arrangement: Sequence[int],
    provided_skill_assignments: Sequence[int],
    log_alpha_prime: float,
    log_gamma: float,
    num_expert_provided_skills: int,
) -> float:
    """Joint log probability of the seating arrangement.

    Items are seated one at a time in index order; each contributes the
    normalized probability of the table it actually sits at.
    """
    gamma = math.exp(log_gamma)
    log_new = log_new_table_probability(log_alpha_prime, log_gamma, num_expert_provided_skills)

    log_prob = 0.0
    table_counts: Dict[int, int] = {}
    label_counts: Dict[int, Dict[int, int]] = {}

    for item, chosen_table_id in enumerate(seating_arrangement):
        item_label = provided_skill_assignments[item]
        log_probs = []
        chosen_lp = log_new

        for table_id, num_seated in table_counts.items():
            K = k_from_counts(label_counts[table_id], item_label, gamma, num_expert_provided_skills)
            lp = log_old_table_probability(num_seated, K, log_gamma, num_expert_provided_skills)
            log_probs.append(lp)
            if table_id == chosen_table_id:
                chosen_lp = lp
        log_probs.append(log_new)

        log_prob += chosen_lp - logsumexp(log_probs)

        table_counts[chosen_table_id] = table_counts.get(chosen_table_id, 0) + 1
        counts = label_counts.setdefault(chosen_table_id, {})
        if item_label != NO_SKILL:
            counts[item_label] = counts.get(item_label, 0) + 1

    return log_prob


class LogUniformPrior:
    """Improper uniform prior on log(x) for x in (0, 1]."""

    def __call__(self, log_x: float) -> float:
        return 0.0 if log_x <= 0.0 else -math.inf


class LogGammaPrior:
    """Unnormalized Gamma(shape, scale) log density of x, evaluated at log(x)."""

    def __init__(self, shape: float, scale: float):
        self.shape = shape
        self.scale = scale

    def __call__(self, log_x: float) -> float:
        return (self.shape - 1.0) * log_x - math.exp(log_x) / self.scale
