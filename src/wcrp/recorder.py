"""Storage of post burn-in MCMC samples."""

from __future__ import annotations

from typing import Dict, List, NamedTuple, Sequence, Tuple

import numpy as np


class Sample(NamedTuple):
    """One recorded state of the chain."""

    skill_labels: Tuple[int, ...]
    train_log_likelihood: float
    predictions: Tuple[np.ndarray, ...]  # predictions[student][trial] = P(correct)


def relabel(seating_arrangement: Sequence[int]) -> Tuple[int, ...]:
    """Map table ids to 0-based labels in order of first appearance."""
    labels: Dict[int, int] = {}
    out = []
    for table_id in seating_arrangement:
        if table_id not in labels:
            labels[table_id] = len(labels)
        out.append(labels[table_id])
    return tuple(out)


class SampleRecorder:
    """Accumulates samples and answers posterior queries over them."""

    def __init__(self, sequence_lengths: Sequence[int]):
        self.sequence_lengths = list(sequence_lengths)
        self.samples: List[Sample] = []

    def __len__(self) -> int:
        return len(self.samples)

    def record(
        self,
        seating_arrangement: Sequence[int],
        train_log_likelihood: float,
        predictions: Sequence[np.ndarray],
    ) -> Sample:
        if len(predictions) != len(self.sequence_lengths):
            raise ValueError("Need one prediction array per student")
        frozen = []
        for student, preds in enumerate(predictions):
            preds = np.array(preds, dtype=float)
            if preds.shape != (self.sequence_lengths[student],):
                raise ValueError(f"Prediction length mismatch for student {student}")
            preds.setflags(write=False)
            frozen.append(preds)

        sample = Sample(
            skill_labels=relabel(seating_arrangement),
            train_log_likelihood=float(train_log_likelihood),
            predictions=tuple(frozen),
        )
        self.samples.append(sample)
        return sample

    def _require_samples(self) -> None:
        if not self.samples:
            raise RuntimeError("No samples recorded yet; run the sampler first")

    def estimated_recall_probability(self, student: int, trial: int) -> float:
        """Posterior mean probability that the student responds correctly on the trial."""
        self._require_samples()
        return float(np.mean([s.predictions[student][trial] for s in self.samples]))

    def mean_predictions(self, student: int) -> np.ndarray:
        """Posterior mean prediction for every trial of a student."""
        self._require_samples()
        return np.mean([s.predictions[student] for s in self.samples], axis=0)

    def sampled_skill_labels(self) -> List[List[int]]:
        """Skill labels of every sample. Labels are not comparable across samples."""
        self._require_samples()
        return [list(s.skill_labels) for s in self.samples]

    def most_likely_skill_labels(self) -> List[int]:
        """Skill labels of the sample with the highest training log likelihood."""
        self._require_samples()
        # argmax keeps the earliest sample on ties
        best = int(np.argmax(self.train_log_likelihoods()))
        return list(self.samples[best].skill_labels)

    def train_log_likelihoods(self) -> np.ndarray:
        return np.array([s.train_log_likelihood for s in self.samples])
