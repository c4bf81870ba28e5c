import pytest

from wcrp.parameters import BKTParameters
from wcrp.random_source import RandomSource
from wcrp.tables import UNASSIGNED, TableStore


def _store():
    # student 0 studies items 0, 1, 0; student 1 studies items 1, 2
    trials_studied = [
        {0: [0, 2], 1: [1]},
        {1: [0], 2: [1]},
    ]
    students_who_studied = [[0], [0, 1], [1]]
    return TableStore(RandomSource(0), 3, students_who_studied, trials_studied)


def test_assign_merges_sorted_trials():
    store = _store()
    store.assign(0, 1, True)
    store.assign(1, 1, False)
    assert store.size(1) == 2
    assert store.trials(1) == {0: [0, 1, 2], 1: [0]}
    assert store.items_at(1) == [0, 1]


def test_remove_restores_trials():
    store = _store()
    store.assign(0, 1, True)
    store.assign(1, 1, False)
    assert store.remove(1, 1) is False
    assert store.trials(1) == {0: [0, 2]}
    assert store.seating_arrangement[1] == UNASSIGNED


def test_remove_last_item_deletes_table_and_recycles_id():
    store = _store()
    store.assign(0, 1, True)
    store.assign(1, store.new_table_id(), True)
    assert store.extant_tables == [1, 2]

    assert store.remove(0, 1) is True
    assert 1 not in store
    assert store.num_used_skills == 1
    assert store.new_table_id() == 1
    with pytest.raises(KeyError):
        store.record(1)


def test_new_table_uses_given_params():
    store = _store()
    params = BKTParameters(psi=0.2, mu=0.3, pi1=0.7, prop0=0.4)
    store.assign(2, 5, True, params=params)
    assert store.params(5) is params
    # explicit ids leave the counter alone; generated ids step around them
    assert store.tables_ever_instantiated == 1
    assert [store.new_table_id() for _ in range(5)] == [1, 2, 3, 4, 6]


def test_assign_twice_raises():
    store = _store()
    store.assign(0, 1, True)
    with pytest.raises(RuntimeError):
        store.assign(0, 1, False)


def test_invariants_after_full_seating():
    store = _store()
    store.assign(0, 1, True)
    store.assign(1, 1, False)
    store.assign(2, store.new_table_id(), True)
    store.check_invariants()
    assert store.table_sizes() == {1: 2, 2: 1}
    assert len(store) == 2
    assert list(store) == [1, 2]


def test_reserve_ids_skips_counter():
    store = _store()
    store.assign(0, 1, True)
    store.reserve_ids(3)
    assert store.new_table_id() == 4


def test_assign_then_remove_restores_bookkeeping():
    store = _store()
    store.assign(0, 1, True)
    store.assign(2, 1, False)
    before_size = store.size(1)
    before_trials = {s: list(t) for s, t in store.trials(1).items()}

    store.assign(1, 1, False)
    store.remove(1, 1)
    assert store.size(1) == before_size
    assert store.trials(1) == before_trials
