"""Student-level train/test splits across replications and folds."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Set, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold


def make_fold_assignments(
    num_students: int,
    num_folds: int,
    num_replications: int = 1,
    seed: int = 42,
) -> np.ndarray:
    """Assign every student to a fold, independently for each replication.

    Uses shuffled KFold on student ids so no student appears in more
    than one fold of a replication.

    Returns:
        Array fold_nums[replication, student].
    """
    if num_folds < 1 or num_replications < 1:
        raise ValueError("num_folds and num_replications must be at least 1")
    if num_folds > 1 and num_students < num_folds:
        raise ValueError(f"Only {num_students} students, need >= {num_folds} for {num_folds} folds")

    fold_nums = np.zeros((num_replications, num_students), dtype=np.int64)
    if num_folds == 1:
        return fold_nums

    students = np.arange(num_students)
    for replication in range(num_replications):
        kf = KFold(n_splits=num_folds, shuffle=True, random_state=seed + replication)
        for fold_idx, (_, test_idx) in enumerate(kf.split(students)):
            fold_nums[replication, test_idx] = fold_idx
    return fold_nums


def save_splits(path: Path, fold_nums: np.ndarray) -> None:
    """Write one line per replication with the fold number of every student."""
    pd.DataFrame(fold_nums).to_csv(path, sep=" ", header=False, index=False)


def iter_train_test_splits(
    fold_nums: np.ndarray,
    num_folds: int,
) -> Iterator[Tuple[int, int, Set[int], Set[int]]]:
    """Yield (replication, test_fold, train_students, test_students).

    With a single fold every student is used for training and the test
    set is empty.
    """
    for replication, replication_folds in enumerate(fold_nums):
        for test_fold in range(num_folds):
            train_students: Set[int] = set()
            test_students: Set[int] = set()
            for student, fold in enumerate(replication_folds):
                if fold == test_fold and num_folds > 1:
                    test_students.add(student)
                else:
                    train_students.add(student)

            if num_folds > 1 and not test_students:
                raise ValueError(f"Replication {replication} fold {test_fold} has no test students")
            if not train_students:
                raise ValueError(f"Replication {replication} fold {test_fold} has no training students")

            yield replication, test_fold, train_students, test_students
