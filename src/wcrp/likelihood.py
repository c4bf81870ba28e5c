"""BKT forward filtering over the current partition.

Every function here is read-only with respect to the TableStore.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

import numpy as np

from .parameters import predict_correct, update_belief

if TYPE_CHECKING:
    from .tables import TableStore


def _check_finite(log_lik: float, where: str) -> None:
    if not math.isfinite(log_lik):
        raise RuntimeError(f"Non-finite log likelihood in {where}: {log_lik}")


def _log_response_prob(p_correct: float, correct: bool) -> float:
    p = p_correct if correct else 1.0 - p_correct
    # also catches nan
    if not p > 0.0:
        raise RuntimeError(f"Non-finite log likelihood: response probability is {p}")
    return math.log(p)


def skill_log_likelihood(
    store: TableStore,
    table_id: int,
    affected_students: Sequence[int],
    first_exposures: Sequence[int],
    recall_sequences: Sequence[Sequence[bool]],
) -> float:
    """Log likelihood of one skill's trials, replaying each student from psi.

    Only trials at or after the student's first exposure contribute, but
    the belief is carried through the earlier trials of the skill too.
    """
    params = store.params(table_id)
    skill_trials = store.trials(table_id)

    skill_log_lik = 0.0
    for student, start_trial in zip(affected_students, first_exposures):
        trials = skill_trials.get(student)
        if not trials:
            continue
        recalls = recall_sequences[student]
        p_hat = params.psi
        student_log_lik = 0.0
        for trial in trials:
            correct = recalls[trial]
            if trial >= start_trial:
                student_log_lik += _log_response_prob(predict_correct(p_hat, params), correct)
            p_hat = update_belief(p_hat, correct, params)

        _check_finite(student_log_lik, f"skill {table_id}")
        skill_log_lik += min(student_log_lik, 0.0)

    return min(skill_log_lik, 0.0)


def cached_skill_log_likelihood(
    store: TableStore,
    table_id: int,
    affected_students: Sequence[int],
    first_exposures: Sequence[int],
    init_p_hat: Sequence[Dict[int, float]],
    recall_sequences: Sequence[Sequence[bool]],
) -> float:
    """Log likelihood of one skill's trials from each student's cached belief.

    init_p_hat[k][table_id] is student k's belief right before
    first_exposures[k], as produced by cache_p_hat(). A table that is
    not active contributes nothing.
    """
    if table_id not in store:
        return 0.0

    params = store.params(table_id)
    skill_trials = store.trials(table_id)

    skill_log_lik = 0.0
    for k, (student, start_trial) in enumerate(zip(affected_students, first_exposures)):
        trials = skill_trials.get(student)
        if not trials:
            # the item just removed was the student's only item in this skill
            continue
        recalls = recall_sequences[student]
        p_hat = init_p_hat[k].get(table_id, params.psi)
        student_log_lik = 0.0
        for trial in trials:
            if trial < start_trial:
                continue
            correct = recalls[trial]
            student_log_lik += _log_response_prob(predict_correct(p_hat, params), correct)
            p_hat = update_belief(p_hat, correct, params)

        _check_finite(student_log_lik, f"skill {table_id}")
        # caching can overshoot zero by a rounding error
        skill_log_lik += min(student_log_lik, 0.0)

    return skill_log_lik


def cache_p_hat(
    store: TableStore,
    student: int,
    end_trial: int,
    recall_sequences: Sequence[Sequence[bool]],
    item_sequences: Sequence[Sequence[int]],
) -> Dict[int, float]:
    """Belief in every active skill for a student right before end_trial."""
    p_hat = {table_id: store.params(table_id).psi for table_id in store.extant_tables}
    recalls = recall_sequences[student]
    items = item_sequences[student]
    seating = store.seating_arrangement

    for trial in range(end_trial):
        table_id = seating[items[trial]]
        p_hat[table_id] = update_belief(p_hat[table_id], recalls[trial], store.params(table_id))

    return p_hat


def student_log_likelihood(
    store: TableStore,
    student: int,
    start_trial: int,
    recall_sequences: Sequence[Sequence[bool]],
    item_sequences: Sequence[Sequence[int]],
) -> Tuple[float, int]:
    """Log probability of a student's responses from start_trial onward.

    Returns the log likelihood and the length of the student's sequence.
    """
    recalls = recall_sequences[student]
    items = item_sequences[student]
    seating = store.seating_arrangement
    p_hat: Dict[int, float] = {}

    log_lik = 0.0
    for trial, item in enumerate(items):
        table_id = seating[item]
        params = store.params(table_id)
        cur_p_hat = p_hat.get(table_id, params.psi)
        correct = recalls[trial]
        if trial >= start_trial:
            log_lik += _log_response_prob(predict_correct(cur_p_hat, params), correct)
        p_hat[table_id] = update_belief(cur_p_hat, correct, params)

    _check_finite(log_lik, f"student {student}")
    return min(log_lik, 0.0), len(items)


def forward_predictions(
    store: TableStore,
    student: int,
    recall_sequences: Sequence[Sequence[bool]],
    item_sequences: Sequence[Sequence[int]],
) -> np.ndarray:
    """Predicted probability of a correct response on every trial of a student."""
    recalls = recall_sequences[student]
    items = item_sequences[student]
    seating = store.seating_arrangement
    p_hat: Dict[int, float] = {}

    predictions: List[float] = []
    for trial, item in enumerate(items):
        table_id = seating[item]
        params = store.params(table_id)
        cur_p_hat = p_hat.get(table_id, params.psi)
        predictions.append(predict_correct(cur_p_hat, params))
        p_hat[table_id] = update_belief(cur_p_hat, recalls[trial], params)

    return np.asarray(predictions, dtype=float)
