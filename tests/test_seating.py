import math

import pytest

from wcrp.seating import (
    NO_SKILL,
    LogGammaPrior,
    LogUniformPrior,
    compute_K,
    log_new_table_probability,
    log_old_table_probability,
    log_seating_prob,
)
from wcrp.tables import UNASSIGNED

# every partition of three items, tables numbered in order of first appearance
PARTITIONS_OF_THREE = [
    [1, 1, 1],
    [1, 1, 2],
    [1, 2, 1],
    [1, 2, 2],
    [1, 2, 3],
]


def test_K_of_unlabelled_table_is_uniform():
    seating = [1, UNASSIGNED]
    labels = [NO_SKILL, 0]
    K = compute_K(1, 1, False, seating, labels, math.log(0.3), 4)
    assert K == pytest.approx(0.25)


def test_K_favours_majority_label():
    seating = [1, 1, 1, UNASSIGNED]
    labels = [0, 0, 1, 0]
    gamma = 0.5
    K_match = compute_K(3, 1, False, seating, labels, math.log(gamma), 2)
    assert K_match == pytest.approx(1.0 / (1.0 + gamma))

    labels_minority = [0, 0, 1, 1]
    K_minority = compute_K(3, 1, False, seating, labels_minority, math.log(gamma), 2)
    assert K_minority == pytest.approx(gamma / (1.0 + gamma))
    assert K_minority < K_match


def test_K_generative_mode_counts_earlier_items_only():
    seating = [1, 1, 1]
    labels = [0, 0, 1]
    gamma = 0.5
    # only item 0 precedes item 1
    K = compute_K(1, 1, True, seating, labels, math.log(gamma), 2)
    assert K == pytest.approx(1.0 / (1.0 + gamma))


def test_gamma_one_ignores_labels():
    seating = [1, 1, UNASSIGNED]
    K = compute_K(2, 1, False, seating, [0, 0, 1], 0.0, 3)
    assert K == pytest.approx(1.0 / 3.0)
    lp = log_old_table_probability(2, K, 0.0, 3)
    assert lp == pytest.approx(math.log(2) - math.log(3))


def test_new_table_probability():
    lp = log_new_table_probability(math.log(2.0), math.log(0.5), 4)
    assert lp == pytest.approx(math.log(2.0 * 0.5 / 4.0))


def test_gamma_one_is_crp():
    alpha_prime = 2.0
    lp = log_seating_prob([1, 1, 2], [0, 1, 0], math.log(alpha_prime), 0.0, 2)
    expected = math.log(1.0 / (1.0 + alpha_prime)) + math.log(alpha_prime / (2.0 + alpha_prime))
    assert lp == pytest.approx(expected)


@pytest.mark.parametrize("gamma", [0.05, 0.4, 1.0])
@pytest.mark.parametrize("labels", [[0, 0, 1], [0, 1, 2], [NO_SKILL, 0, 0]])
def test_seating_prob_sums_to_one(gamma, labels):
    n_expert = max(1, 1 + max(labels))
    total = sum(
        math.exp(log_seating_prob(seating, labels, math.log(1.5), math.log(gamma), n_expert))
        for seating in PARTITIONS_OF_THREE
    )
    assert total == pytest.approx(1.0)


def test_low_gamma_prefers_expert_partition():
    labels = [0, 0, 1]
    log_gamma = math.log(1e-3)
    expert = log_seating_prob([1, 1, 2], labels, 0.0, log_gamma, 2)
    mixed = log_seating_prob([1, 2, 2], labels, 0.0, log_gamma, 2)
    assert expert > mixed


def test_priors():
    uniform = LogUniformPrior()
    assert uniform(-3.0) == 0.0
    assert uniform(0.5) == -math.inf

    gamma_prior = LogGammaPrior(1.0, 10.0)
    assert gamma_prior(0.0) == pytest.approx(-0.1)
    assert gamma_prior(math.log(5.0)) > gamma_prior(math.log(50.0))
