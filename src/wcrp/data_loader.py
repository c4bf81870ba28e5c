"""Data loading for the WCRP sampler."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np
import pandas as pd

from .seating import NO_SKILL

DATASET_COLUMNS = ["student", "item", "skill", "recall"]


@dataclass
class WCRPDataset:
    """Per-student response sequences plus expert skill labels."""

    recall_sequences: List[List[bool]]  # recall_sequences[student][trial]
    item_sequences: List[List[int]]  # item_sequences[student][trial]
    provided_skill_assignments: List[int]  # provided_skill_assignments[item], NO_SKILL if unknown
    num_students: int
    num_items: int
    num_skills: int

    @property
    def num_trials(self) -> int:
        return sum(len(seq) for seq in self.item_sequences)


def _check_contiguous(values: np.ndarray, name: str) -> int:
    """Return the number of distinct ids, requiring them to be 0..n-1."""
    if values.size == 0:
        return 0
    if values.min() < 0:
        raise ValueError(f"Negative {name} id found")
    n = int(values.max()) + 1
    missing = np.setdiff1d(np.arange(n), np.unique(values))
    if missing.size:
        raise ValueError(f"{name} ids are not contiguous; missing {missing[:10].tolist()}")
    return n


def dataset_from_frame(df: pd.DataFrame) -> WCRPDataset:
    """Build a dataset from a long-format DataFrame.

    Rows are trials in chronological order within each student. Columns
    are student, item, skill and recall; all ids start at 0 and are
    contiguous. A skill of -1 marks an item without an expert label.
    """
    missing = [c for c in DATASET_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")
    if df.empty:
        raise ValueError("Dataset has no trials")
    if df[DATASET_COLUMNS].isna().any().any():
        raise ValueError("Dataset contains missing values")

    df = df[DATASET_COLUMNS].astype(np.int64)
    if not df["recall"].isin([0, 1]).all():
        raise ValueError("recall must be 0 or 1")
    if (df["skill"] < NO_SKILL).any():
        raise ValueError(f"Skill ids must be non-negative or {NO_SKILL}")

    num_students = _check_contiguous(df["student"].to_numpy(), "student")
    num_items = _check_contiguous(df["item"].to_numpy(), "item")
    labelled = df.loc[df["skill"] != NO_SKILL, "skill"].to_numpy()
    num_skills = _check_contiguous(labelled, "skill")

    item_labels = df.groupby("item")["skill"].nunique()
    conflicting = item_labels[item_labels > 1]
    if not conflicting.empty:
        raise ValueError(f"Items with more than one expert skill: {conflicting.index[:10].tolist()}")

    provided = [NO_SKILL] * num_items
    for item, skill in df.drop_duplicates("item")[["item", "skill"]].itertuples(index=False):
        provided[int(item)] = int(skill)

    recall_sequences: List[List[bool]] = [[] for _ in range(num_students)]
    item_sequences: List[List[int]] = [[] for _ in range(num_students)]
    for student, item, recall in df[["student", "item", "recall"]].itertuples(index=False):
        recall_sequences[int(student)].append(bool(recall))
        item_sequences[int(student)].append(int(item))

    return WCRPDataset(
        recall_sequences=recall_sequences,
        item_sequences=item_sequences,
        provided_skill_assignments=provided,
        num_students=num_students,
        num_items=num_items,
        num_skills=num_skills,
    )


def load_dataset(path: Path) -> WCRPDataset:
    """Load a whitespace-delimited file with columns: student, item, skill, recall.

    Args:
        path: Path to the data file (no header row).

    Returns:
        WCRPDataset with one response sequence per student in file order.
    """
    df = pd.read_csv(path, sep=r"\s+", header=None, names=DATASET_COLUMNS, comment="#")
    return dataset_from_frame(df)


def load_splits(path: Path, num_students: int) -> Tuple[np.ndarray, int]:
    """Load train/test splits.

    Each line is one replication and holds the fold number of every
    student, separated by whitespace.

    Returns:
        Tuple of (fold_nums[replication, student], num_folds).
    """
    df = pd.read_csv(path, sep=r"\s+", header=None)
    if df.empty:
        raise ValueError(f"No replications found in {path}")
    if df.shape[1] != num_students:
        raise ValueError(f"Each split line must have {num_students} entries, found {df.shape[1]}")
    if df.isna().any().any():
        raise ValueError("Split lines must all have the same length")

    fold_nums = df.to_numpy(dtype=np.int64)
    if fold_nums.min() < 0:
        raise ValueError("Fold numbers must be non-negative")
    num_folds = int(fold_nums.max()) + 1
    return fold_nums, num_folds


def to_frame(dataset: WCRPDataset) -> pd.DataFrame:
    """Long-format view of a dataset, one row per trial."""
    records = []
    for student, (items, recalls) in enumerate(zip(dataset.item_sequences, dataset.recall_sequences)):
        for trial, (item, recall) in enumerate(zip(items, recalls)):
            records.append(
                {
                    "student": student,
                    "trial": trial,
                    "item": item,
                    "skill": dataset.provided_skill_assignments[item],
                    "recall": int(recall),
                }
            )
    return pd.DataFrame.from_records(records, columns=["student", "trial", "item", "skill", "recall"])
