"""Partition of items into skills ("tables") and per-skill bookkeeping."""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence

from .parameters import BKTParameters, draw_bkt_param_prior

if TYPE_CHECKING:
    from .random_source import RandomSource

UNASSIGNED = 0


@dataclass
class SkillRecord:
    """State owned by one active table."""

    params: BKTParameters
    size: int = 0
    # trials[student] = sorted trial indices of that student attributable to this skill
    trials: Dict[int, List[int]] = field(default_factory=dict)


class TableStore:
    """Arena of skill records addressed by integer table ids.

    Table ids are handles into the arena. Slot 0 is reserved for
    UNASSIGNED. Ids of deleted tables are recycled through a free list
    before the id counter is advanced.

    All mutation goes through assign() and remove() so that seating,
    sizes and per-student trial lists stay consistent.
    """

    def __init__(
        self,
        generator: RandomSource,
        num_items: int,
        students_who_studied: Sequence[Sequence[int]],
        trials_studied: Sequence[Dict[int, List[int]]],
    ):
        self.generator = generator
        self.num_items = num_items
        self.students_who_studied = students_who_studied
        self.trials_studied = trials_studied

        self.seating_arrangement: List[int] = [UNASSIGNED] * num_items
        self._records: List[Optional[SkillRecord]] = [None]
        self._free_ids: List[int] = []
        self.tables_ever_instantiated = UNASSIGNED + 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def num_used_skills(self) -> int:
        return sum(1 for record in self._records if record is not None)

    @property
    def extant_tables(self) -> List[int]:
        """Ids of active tables in increasing order."""
        return [table_id for table_id, record in enumerate(self._records) if record is not None]

    def __contains__(self, table_id: int) -> bool:
        return 0 <= table_id < len(self._records) and self._records[table_id] is not None

    def __iter__(self) -> Iterator[int]:
        return iter(self.extant_tables)

    def __len__(self) -> int:
        return self.num_used_skills

    def record(self, table_id: int) -> SkillRecord:
        if table_id not in self:
            raise KeyError(f"Table {table_id} is not active")
        return self._records[table_id]

    def params(self, table_id: int) -> BKTParameters:
        return self.record(table_id).params

    def size(self, table_id: int) -> int:
        return self.record(table_id).size

    def table_sizes(self) -> Dict[int, int]:
        return {table_id: self._records[table_id].size for table_id in self.extant_tables}

    def trials(self, table_id: int) -> Dict[int, List[int]]:
        return self.record(table_id).trials

    def items_at(self, table_id: int) -> List[int]:
        return [item for item, t in enumerate(self.seating_arrangement) if t == table_id]

    # ------------------------------------------------------------------
    # Id allocation
    # ------------------------------------------------------------------
    def new_table_id(self) -> int:
        """Return an unused table id, preferring recycled ones."""
        while self._free_ids:
            table_id = self._free_ids.pop()
            if table_id not in self:
                return table_id
        table_id = self.tables_ever_instantiated
        # ids seated explicitly are not counted, skip past them
        while table_id in self:
            table_id += 1
        self.tables_ever_instantiated = table_id + 1
        return table_id

    def reserve_ids(self, count: int) -> None:
        """Advance the id counter without creating tables."""
        self.tables_ever_instantiated += count

    def _ensure_slot(self, table_id: int) -> None:
        if table_id <= UNASSIGNED:
            raise ValueError(f"Invalid table id {table_id}")
        while len(self._records) <= table_id:
            self._records.append(None)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def assign(
        self,
        item: int,
        table_id: int,
        is_new_table: bool,
        params: Optional[BKTParameters] = None,
    ) -> None:
        """Seat an item at a table.

        A new table gets parameters drawn from the BKT prior unless
        params is given. Joining an existing table merges the item's
        trial indices into each affected student's sorted trial list.
        """
        if self.seating_arrangement[item] != UNASSIGNED:
            raise RuntimeError(f"Item {item} is already seated at table {self.seating_arrangement[item]}")

        if is_new_table:
            self._ensure_slot(table_id)
            if self._records[table_id] is not None:
                raise RuntimeError(f"Table {table_id} already exists")
            if params is None:
                params = draw_bkt_param_prior(self.generator)
            record = SkillRecord(params=params, size=1)
            for student in self.students_who_studied[item]:
                record.trials[student] = list(self.trials_studied[student][item])
            self._records[table_id] = record
        else:
            record = self.record(table_id)
            record.size += 1
            for student in self.students_who_studied[item]:
                item_trials = self.trials_studied[student][item]
                existing = record.trials.get(student)
                if existing is None:
                    record.trials[student] = list(item_trials)
                else:
                    record.trials[student] = list(heapq.merge(existing, item_trials))

        self.seating_arrangement[item] = table_id

    def remove(self, item: int, table_id: int) -> bool:
        """Unseat an item. Returns True if its table was deleted."""
        record = self.record(table_id)
        if self.seating_arrangement[item] != table_id:
            raise RuntimeError(f"Item {item} is not seated at table {table_id}")

        record.size -= 1
        self.seating_arrangement[item] = UNASSIGNED

        if record.size == 0:
            self._records[table_id] = None
            self._free_ids.append(table_id)
            return True

        for student in self.students_who_studied[item]:
            item_trials = set(self.trials_studied[student][item])
            remaining = [t for t in record.trials[student] if t not in item_trials]
            if remaining:
                record.trials[student] = remaining
            else:
                # the student has no other items assigned to this skill
                del record.trials[student]

        return False

    def check_invariants(self) -> None:
        """Raise AssertionError if the partition bookkeeping is inconsistent."""
        sizes = self.table_sizes()
        assert sum(sizes.values()) == self.num_items, "table sizes do not cover every item"
        for item, table_id in enumerate(self.seating_arrangement):
            assert table_id in self, f"item {item} seated at inactive table {table_id}"
        for table_id, size in sizes.items():
            assert size == len(self.items_at(table_id)), f"size mismatch for table {table_id}"
            assert self._records[table_id].params.is_valid(), f"invalid parameters for table {table_id}"
        assert self.num_used_skills == len(sizes)
