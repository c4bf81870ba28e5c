"""Metrics on held-out predictions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, f1_score, log_loss, roc_auc_score


@dataclass
class Metrics:
    """Evaluation metrics."""

    auc: Optional[float]
    accuracy: Optional[float]
    f1: Optional[float]
    cross_entropy: Optional[float]
    n_samples: int


def compute_metrics(
    y_true: np.ndarray,
    y_prob: np.ndarray,
    threshold: float = 0.5,
) -> Metrics:
    """Compute evaluation metrics.

    Args:
        y_true: Ground truth binary labels.
        y_prob: Predicted probabilities.
        threshold: Classification threshold.

    Returns:
        Metrics dataclass with AUC, accuracy, F1, cross entropy (nats per
        trial) and sample count. AUC is None unless both classes occur.
    """
    y_true = np.asarray(y_true, dtype=int)
    y_prob = np.asarray(y_prob, dtype=float)
    n_samples = len(y_true)

    if n_samples == 0:
        return Metrics(auc=None, accuracy=None, f1=None, cross_entropy=None, n_samples=0)

    auc = float(roc_auc_score(y_true, y_prob)) if len(np.unique(y_true)) >= 2 else None

    y_pred = (y_prob >= threshold).astype(int)
    accuracy = float(accuracy_score(y_true, y_pred))
    f1 = float(f1_score(y_true, y_pred, zero_division=0))
    cross_entropy = float(log_loss(y_true, y_prob, labels=[0, 1]))

    return Metrics(auc=auc, accuracy=accuracy, f1=f1, cross_entropy=cross_entropy, n_samples=n_samples)


def evaluate_predictions(predictions: pd.DataFrame, threshold: float = 0.5) -> Metrics:
    """Metrics over the held-out rows of a predictions table."""
    test_rows = predictions[predictions["is_test"] == 1]
    return compute_metrics(
        test_rows["recall"].to_numpy(),
        test_rows["predicted_prob"].to_numpy(),
        threshold,
    )


def summarize_folds(fold_metrics: List[Dict[str, Any]]) -> Dict[str, Optional[float]]:
    """Mean and sample standard deviation of each metric across folds."""
    result: Dict[str, Optional[float]] = {}
    for m in ["auc", "accuracy", "f1", "cross_entropy"]:
        values = [fm[m] for fm in fold_metrics if fm.get(m) is not None]
        if values:
            result[m] = float(np.mean(values))
            result[f"{m}_std"] = float(np.std(values, ddof=1)) if len(values) > 1 else 0.0
        else:
            result[m] = None
            result[f"{m}_std"] = None
    return result


def metrics_row(metrics: Metrics, **extra: Any) -> Dict[str, Any]:
    return {**extra, **asdict(metrics)}
