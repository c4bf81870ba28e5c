"""Persist sampler output as tab-separated files."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence

import pandas as pd

if TYPE_CHECKING:
    from .sampler import IterationStats, MixtureWCRP

PREDICTION_COLUMNS = [
    "replication",
    "fold",
    "student",
    "trial",
    "item",
    "recall",
    "predicted_prob",
    "is_test",
]


def collect_predictions(
    model: MixtureWCRP,
    replication: int,
    fold: int,
    test_only: bool = False,
) -> pd.DataFrame:
    """Posterior mean prediction for every trial of every student."""
    records = []
    for student in range(model.num_students):
        is_test = student in model.test_students
        if test_only and not is_test:
            continue
        preds = model.recorder.mean_predictions(student)
        for trial, (item, recall) in enumerate(
            zip(model.item_sequences[student], model.recall_sequences[student])
        ):
            records.append(
                {
                    "replication": replication,
                    "fold": fold,
                    "student": student,
                    "trial": trial,
                    "item": item,
                    "recall": int(recall),
                    "predicted_prob": float(preds[trial]),
                    "is_test": int(is_test),
                }
            )
    return pd.DataFrame.from_records(records, columns=PREDICTION_COLUMNS)


def write_predictions(path: Path, predictions: pd.DataFrame, append: bool = False) -> None:
    """Write one line per replication-fold-student-trial."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not (append and path.exists())
    predictions.to_csv(
        path,
        sep="\t",
        index=False,
        header=write_header,
        mode="a" if append else "w",
        float_format="%.6f",
    )


def write_map_labels(path: Path, labels: Sequence[int]) -> None:
    """Write the skill label of each item, one line per item."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame({"skill": list(labels)}).to_csv(path, sep="\t", index=False, header=False)


def write_sampled_labels(path: Path, samples: List[List[int]]) -> None:
    """Write the skill labels of every sample, one line per sample."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(samples).to_csv(path, sep="\t", index=False, header=False)


def write_history(path: Path, history: Sequence[IterationStats]) -> None:
    """Write the per-sweep diagnostics of a run."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame([asdict(h) for h in history]).to_csv(path, sep="\t", index=False)
