"""
Tests for the assignment store (validation, batches, undo/redo, dirty tracking)
"""

from datetime import date

import pytest

from shift_grid.errors import ValidationError
from shift_grid.store import Assignment, AssignmentStore

from conftest import FIXED_NOW, PATIENT, assigned, key

D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)
D3 = date(2024, 1, 3)


class TestSetAndClear:

    def test_get_absent_is_none(self, store):
        assert store.get(key(D1, 0)) is None
        assert key(D1, 0) not in store

    def test_set_records_one_checkpoint(self, store):
        store.set(key(D1, 0), assigned("prof-a"))
        assert store.get(key(D1, 0)).professional_id == "prof-a"
        assert len(store.history) == 1
        entry = store.history.entries()[0]
        assert entry.previous is None
        assert entry.next.professional_id == "prof-a"

    def test_clear_is_distinct_from_absent(self, store):
        store.set(key(D1, 0), assigned("prof-a"))
        store.clear(key(D1, 0))
        cleared = store.get(key(D1, 0))
        assert cleared is not None
        assert cleared.professional_id is None
        assert cleared.modified_by == "user-1"
        assert cleared.modified_at == FIXED_NOW

    def test_set_rejects_malformed_key(self, store):
        with pytest.raises(ValidationError) as exc:
            store.set("not-a-key", assigned("prof-a"))
        assert exc.value.keys == ["not-a-key"]
        assert len(store) == 0
        assert len(store.history) == 0

    @pytest.mark.parametrize("raw", [
        f"{PATIENT}|2024-01-01|01",
        f"{PATIENT}|20240101|1",
    ])
    def test_set_rejects_non_canonical_key(self, store, raw):
        with pytest.raises(ValidationError) as exc:
            store.set(raw, assigned("prof-old"))
        assert exc.value.keys == [raw]
        assert len(store) == 0

    def test_set_rejects_untyped_value(self, store):
        with pytest.raises(ValidationError):
            store.set(key(D1, 0), {"professional_id": "prof-a"})

    def test_stamp_uses_callable_user(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, user_id=lambda: "from-session")
        assert store.stamp("prof-a").modified_by == "from-session"


class TestSetMany:

    def test_batch_is_one_checkpoint(self, store):
        store.set_many([(key(D1, 0), assigned("a")), (key(D2, 0), assigned("b"))])
        assert len(store.history) == 1
        assert len(store.history.entries()) == 2

    def test_single_undo_reverts_whole_batch(self, store):
        k1, k2 = key(D1, 0), key(D2, 0)
        store.set_many([(k1, assigned("a")), (k2, assigned("b"))])
        assert store.undo_last() is True
        assert store.get(k1) is None
        assert store.get(k2) is None
        assert len(store) == 0

    def test_one_bad_entry_rejects_everything(self, store):
        store.set(key(D1, 0), assigned("a"))
        before = store.snapshot()
        history_before = len(store.history)
        with pytest.raises(ValidationError) as exc:
            store.set_many([
                (key(D1, 0), assigned("changed")),
                ("broken", assigned("b")),
                (key(D2, 0), assigned("c")),
                (key(D2, 1), "not an assignment"),
            ])
        assert exc.value.keys == ["broken", key(D2, 1)]
        assert store.snapshot() == before
        assert len(store.history) == history_before

    def test_empty_batch_is_noop(self, store):
        store.set_many([])
        assert len(store.history) == 0
        assert store.revision == 0

    def test_repeated_key_in_batch_undoes_to_original(self, store):
        k1 = key(D1, 0)
        store.set(k1, assigned("orig"))
        store.set_many([(k1, assigned("x")), (k1, assigned("y"))])
        assert store.get(k1).professional_id == "y"
        store.undo_last()
        assert store.get(k1).professional_id == "orig"


class TestUndoRedo:

    def test_undo_is_inverse_of_sets(self, store):
        store.reset({key(D1, 0): assigned("seed")})
        original = store.snapshot()
        edits = [
            (key(D1, 0), assigned("a")),
            (key(D1, 1), assigned("b")),
            (key(D1, 0), assigned(None)),
            (key(D2, 0), assigned("c")),
        ]
        for k, a in edits:
            store.set(k, a)
        for _ in edits:
            assert store.undo_last()
        assert store.snapshot() == original

    def test_undo_on_empty_history(self, store):
        assert store.undo_last() is False

    def test_redo_reapplies(self, store):
        store.set(key(D1, 0), assigned("a"))
        after = store.snapshot()
        store.undo_last()
        assert store.redo_last() is True
        assert store.snapshot() == after
        assert store.redo_last() is False


class TestResetAndDirty:

    def test_reset_clears_history_and_is_clean(self, store):
        store.set(key(D1, 0), assigned("a"))
        store.reset({key(D2, 0): assigned("b")})
        assert len(store.history) == 0
        assert store.keys() == [key(D2, 0)]
        assert not store.is_dirty

    def test_dirty_follows_edits_and_undo(self, store):
        store.reset({})
        store.set(key(D1, 0), assigned("a"))
        assert store.is_dirty
        store.undo_last()
        assert not store.is_dirty

    def test_mark_saved(self, store):
        store.set(key(D1, 0), assigned("a"))
        store.mark_saved()
        assert not store.is_dirty

    def test_reset_validates(self, store):
        with pytest.raises(ValidationError):
            store.reset({"bad": assigned("a")})

    def test_revision_increments(self, store):
        store.set(key(D1, 0), assigned("a"))
        store.undo_last()
        store.redo_last()
        assert store.revision == 3


class TestLockedDays:

    def test_locked_day_rejected(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, min_editable_date=D2)
        with pytest.raises(ValidationError) as exc:
            store.set(key(D1, 0), assigned("a"))
        assert "locked" in exc.value.failures[0].reason
        store.set(key(D2, 0), assigned("a"))

    def test_reset_accepts_locked_days(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, min_editable_date=D2)
        store.reset({key(D1, 0): assigned("history")})
        assert store.get(key(D1, 0)).professional_id == "history"


class TestSwap:

    def test_swap_exchanges_professionals(self, store):
        k1, k2 = key(D1, 0), key(D2, 0)
        store.set(k1, assigned("a", source_demand_id="dem-1"))
        store.set(k2, assigned("b"))
        store.swap(k1, k2)
        assert store.get(k1).professional_id == "b"
        assert store.get(k1).source_demand_id == "dem-1"
        assert store.get(k2).professional_id == "a"
        assert len(store.history) == 3

    def test_swap_with_absent_cell(self, store):
        k1, k2 = key(D1, 0), key(D2, 0)
        store.set(k1, assigned("a"))
        store.swap(k1, k2)
        assert store.get(k1).professional_id is None
        assert store.get(k2).professional_id == "a"
        store.undo_last()
        assert store.get(k1).professional_id == "a"
        assert store.get(k2) is None


class TestMoveAndCopy:

    def test_move_leaves_source_cleared(self, store):
        store.set(key(D1, 0), assigned("a", source_demand_id="dem-1"))
        store.move(key(D1, 0), key(D2, 1))

        moved = store.get(key(D2, 1))
        assert moved.professional_id == "a"
        assert moved.source_demand_id == "dem-1"
        assert store.get(key(D1, 0)).is_empty
        assert len(store.history) == 2

        store.undo_last()
        assert store.get(key(D1, 0)).professional_id == "a"
        assert store.get(key(D2, 1)) is None

    def test_move_from_empty_cell_is_noop(self, store):
        store.move(key(D1, 0), key(D2, 0))
        assert len(store) == 0
        assert len(store.history) == 0

    def test_copy_keeps_source(self, store):
        store.set(key(D1, 0), assigned("a"))
        store.copy(key(D1, 0), key(D2, 0))
        assert store.get(key(D1, 0)).professional_id == "a"
        assert store.get(key(D2, 0)).professional_id == "a"
        assert len(store.history) == 2

    def test_locked_source_or_target_rejected(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, min_editable_date=D2)
        store.reset({key(D1, 0): assigned("history")})
        store.set(key(D2, 0), assigned("b"))
        with pytest.raises(ValidationError):
            store.move(key(D1, 0), key(D2, 1))
        with pytest.raises(ValidationError):
            store.copy(key(D2, 0), key(D1, 1))
        assert store.get(key(D1, 0)).professional_id == "history"
        assert store.get(key(D1, 1)) is None
        assert len(store.history) == 1


class TestSwapDays:

    def test_exchanges_every_slot(self, store):
        store.set_many([
            (key(D1, 0), assigned("a")),
            (key(D1, 1), assigned("b")),
            (key(D2, 1), assigned("c")),
        ])
        store.swap_days(PATIENT, D1, D2)

        assert store.get(key(D1, 0)).is_empty
        assert store.get(key(D1, 1)).professional_id == "c"
        assert store.get(key(D2, 0)).professional_id == "a"
        assert store.get(key(D2, 1)).professional_id == "b"
        assert len(store.history) == 2

    def test_other_patients_untouched(self, store):
        store.set(key(D1, 0, patient_id="other"), assigned("x"))
        store.set(key(D1, 0), assigned("a"))
        store.swap_days(PATIENT, D1, D2)
        assert store.get(key(D1, 0, patient_id="other")).professional_id == "x"
        assert store.get(key(D2, 0, patient_id="other")) is None

    def test_single_undo(self, store):
        store.set_many([(key(D1, 0), assigned("a")), (key(D2, 0), assigned("b"))])
        before = store.snapshot()
        store.swap_days(PATIENT, D1, D2)
        store.undo_last()
        assert store.snapshot() == before

    def test_locked_day_rejected(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, min_editable_date=D2)
        store.reset({key(D1, 0): assigned("history")})
        with pytest.raises(ValidationError):
            store.swap_days(PATIENT, D1, D2)
        assert store.get(key(D2, 0)) is None


class TestClearRange:

    def test_clears_assigned_cells_in_range(self, store):
        store.set_many([
            (key(D1, 0), assigned("a")),
            (key(D2, 0), assigned("b")),
            (key(D3, 0), assigned("c")),
            (key(D1, 0, patient_id="other"), assigned("x")),
        ])
        cleared = store.clear_range(PATIENT, D1, D2)

        assert cleared == [key(D1, 0), key(D2, 0)]
        assert store.get(key(D1, 0)).is_empty
        assert store.get(key(D2, 0)).is_empty
        assert store.get(key(D3, 0)).professional_id == "c"
        assert store.get(key(D1, 0, patient_id="other")).professional_id == "x"
        assert len(store.history) == 2

    def test_keeps_locked_days(self):
        store = AssignmentStore(clock=lambda: FIXED_NOW, min_editable_date=D2)
        store.reset({key(D1, 0): assigned("history"), key(D2, 0): assigned("b")})
        assert store.clear_range(PATIENT, D1, D3) == [key(D2, 0)]
        assert store.get(key(D1, 0)).professional_id == "history"

    def test_nothing_to_clear(self, store):
        assert store.clear_range(PATIENT, D1, D3) == []
        assert len(store.history) == 0


class TestListeners:

    def test_listener_notified_until_unsubscribed(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda s: seen.append(s.revision))
        store.set(key(D1, 0), assigned("a"))
        unsubscribe()
        store.set(key(D1, 1), assigned("b"))
        assert seen == [1]


class TestAssignmentRecord:

    def test_record_round_trip(self):
        original = Assignment("prof-a", "dem-1", FIXED_NOW, "user-1")
        assert Assignment.from_record(original.to_record()) == original

    def test_from_loose_row(self):
        row = {"professional_id": "", "modified_at": "2024-01-01T10:00:00Z", "extra": 1}
        assignment = Assignment.from_record(row)
        assert assignment.professional_id is None
        assert assignment.modified_at.hour == 10
