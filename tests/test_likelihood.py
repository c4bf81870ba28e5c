import pytest

from wcrp.likelihood import (
    cache_p_hat,
    cached_skill_log_likelihood,
    forward_predictions,
    skill_log_likelihood,
    student_log_likelihood,
)


def test_skill_log_likelihood_is_non_positive(make_model):
    model = make_model(beta=1.0)
    for table_id in model.store.extant_tables:
        students, firsts = model._students_of_skill(table_id)
        ll = skill_log_likelihood(model.store, table_id, students, firsts, model.recall_sequences)
        assert ll <= 0.0


def test_skill_likelihoods_add_up_to_data_likelihood(make_model):
    model = make_model(beta=1.0)
    store = model.store
    total = 0.0
    for table_id in store.extant_tables:
        students = sorted(store.trials(table_id))
        total += skill_log_likelihood(store, table_id, students, [0] * len(students), model.recall_sequences)

    data_ll, num_trials = model.full_data_log_likelihood(True)
    assert data_ll == pytest.approx(total)
    assert num_trials == 15


@pytest.mark.parametrize("item", [0, 1, 2, 3])
def test_cached_matches_full_replay(make_model, item):
    model = make_model(beta=1.0)
    store = model.store
    table_id = store.seating_arrangement[item]
    students = model.students_who_studied[item]
    firsts = model.all_first_encounters[item]

    p_hat = [
        cache_p_hat(store, student, first, model.recall_sequences, model.item_sequences)
        for student, first in zip(students, firsts)
    ]
    cached = cached_skill_log_likelihood(store, table_id, students, firsts, p_hat, model.recall_sequences)
    full = skill_log_likelihood(store, table_id, students, firsts, model.recall_sequences)
    assert cached == pytest.approx(full)


def test_cached_likelihood_of_inactive_table_is_zero(make_model):
    model = make_model(beta=1.0)
    assert cached_skill_log_likelihood(model.store, 999, [0], [0], [{}], model.recall_sequences) == 0.0


def test_student_likelihood_from_later_trial(make_model):
    model = make_model(beta=1.0)
    full, n = student_log_likelihood(model.store, 0, 0, model.recall_sequences, model.item_sequences)
    tail, _ = student_log_likelihood(model.store, 0, 3, model.recall_sequences, model.item_sequences)
    assert n == 6
    assert full <= tail <= 0.0


def test_forward_predictions_are_probabilities(make_model):
    model = make_model(beta=1.0)
    for student in range(model.num_students):
        preds = forward_predictions(model.store, student, model.recall_sequences, model.item_sequences)
        assert preds.shape == (len(model.item_sequences[student]),)
        assert ((preds > 0.0) & (preds < 1.0)).all()


@pytest.mark.parametrize("psi", [1.0, float("nan")])
def test_impossible_response_is_fatal(make_model, psi):
    model = make_model(beta=1.0)
    # student 0 answers item 0 (skill 1) incorrectly on trial 0
    params = model.store.params(1)
    params.pi1 = 1.0
    params.psi = psi

    with pytest.raises(RuntimeError):
        skill_log_likelihood(model.store, 1, [0], [0], model.recall_sequences)
    with pytest.raises(RuntimeError):
        model.full_data_log_likelihood(True)
