"""Shared fixtures: a toy dataset of 3 students, 4 items and 2 expert skills."""

from __future__ import annotations

from pathlib import Path

import pytest

from wcrp.random_source import RandomSource
from wcrp.sampler import MixtureWCRP

# items 0, 1 -> skill 0; items 2, 3 -> skill 1
TOY_LABELS = [0, 0, 1, 1]
TOY_ITEMS = [
    [0, 1, 2, 3, 0, 2],
    [1, 0, 3, 2],
    [2, 3, 0, 1, 3],
]
TOY_RECALLS = [
    [False, True, False, True, True, True],
    [True, True, False, False],
    [True, False, False, True, True],
]


@pytest.fixture
def toy_data():
    return {
        "recall_sequences": [list(seq) for seq in TOY_RECALLS],
        "item_sequences": [list(seq) for seq in TOY_ITEMS],
        "provided_skill_assignments": list(TOY_LABELS),
        "num_students": len(TOY_ITEMS),
        "num_items": len(TOY_LABELS),
    }


@pytest.fixture
def make_model(toy_data):
    """Factory for samplers over the toy data."""

    def _make(
        beta=0.0,
        alpha_prime=1.0,
        train_students=None,
        test_students=None,
        labels=None,
        num_subsamples=20,
        seed=0,
    ):
        if train_students is None:
            train_students = set(range(toy_data["num_students"]))
        return MixtureWCRP(
            RandomSource(seed),
            train_students,
            test_students,
            toy_data["recall_sequences"],
            toy_data["item_sequences"],
            labels if labels is not None else toy_data["provided_skill_assignments"],
            beta,
            alpha_prime,
            toy_data["num_students"],
            toy_data["num_items"],
            num_subsamples,
            verbose=False,
        )

    return _make


@pytest.fixture
def toy_data_file(tmp_path) -> Path:
    path = tmp_path / "toy_data.txt"
    lines = []
    for student, (items, recalls) in enumerate(zip(TOY_ITEMS, TOY_RECALLS)):
        for item, recall in zip(items, recalls):
            lines.append(f"{student} {item} {TOY_LABELS[item]} {int(recall)}")
    path.write_text("\n".join(lines) + "\n")
    return path
