"""
store.py — Assignment store for one scheduling view

Owns the AssignmentMap ({key: Assignment}) and is the only thing that
mutates it. Each mutation records one checkpoint in the HistoryLog:

  set / clear     one-diff checkpoint
  set_many        one checkpoint for the whole batch (single undo step)
  swap, move      one checkpoint covering both cells
  copy            one-diff checkpoint
  swap_days       one checkpoint for every slot of both days
  clear_range     one checkpoint; locked days are kept
  reset           wholesale replace after a server load; history cleared

A key that is absent was never touched; an Assignment whose
professional_id is None was explicitly cleared.

Batches are validated in full before anything is written: one bad entry
rejects the whole batch with a ValidationError listing every bad key.

The store is created by the view that owns it and passed around by
reference. The clock and the current user id are injected.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from shift_grid.errors import KeyFailure, ValidationError
from shift_grid.history import HistoryLog, KeyDiff
from shift_grid.keys import assignment_key, parse_assignment_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    professional_id: Optional[str]
    source_demand_id: Optional[str] = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.professional_id is None

    def to_record(self) -> Dict[str, Any]:
        return {
            "professional_id":  self.professional_id,
            "source_demand_id": self.source_demand_id,
            "modified_at":      self.modified_at.isoformat() if self.modified_at else None,
            "modified_by":      self.modified_by,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Assignment":
        """Build from a loosely-typed backend row / JSON record."""
        raw_at = record.get("modified_at")
        if isinstance(raw_at, str) and raw_at:
            modified_at: Optional[datetime] = datetime.fromisoformat(raw_at.replace("Z", "+00:00"))
        elif isinstance(raw_at, datetime):
            modified_at = raw_at
        else:
            modified_at = None
        return cls(
            professional_id=record.get("professional_id") or None,
            source_demand_id=record.get("source_demand_id") or None,
            modified_at=modified_at,
            modified_by=record.get("modified_by") or None,
        )


AssignmentMap = Dict[str, Assignment]
Listener = Callable[["AssignmentStore"], None]


class AssignmentStore:

    def __init__(
        self,
        history: Optional[HistoryLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
        user_id: Union[str, Callable[[], Optional[str]], None] = None,
        min_editable_date: Optional[date] = None,
    ):
        self.history = history if history is not None else HistoryLog()
        self.min_editable_date = min_editable_date
        self._clock = clock or datetime.now
        self._user_id = user_id
        self._assignments: AssignmentMap = {}
        self._baseline: AssignmentMap = {}
        self._revision = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Assignment]:
        return self._assignments.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._assignments

    def __len__(self) -> int:
        return len(self._assignments)

    def keys(self) -> List[str]:
        return list(self._assignments)

    def items(self) -> List[Tuple[str, Assignment]]:
        return list(self._assignments.items())

    def snapshot(self) -> AssignmentMap:
        return dict(self._assignments)

    @property
    def revision(self) -> int:
        """Incremented on every mutation (including undo/redo/reset)."""
        return self._revision

    @property
    def is_dirty(self) -> bool:
        return self._assignments != self._baseline

    def is_locked(self, day: date) -> bool:
        return self.min_editable_date is not None and day < self.min_editable_date

    # ------------------------------------------------------------------
    # Stamping
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def current_user(self) -> Optional[str]:
        if callable(self._user_id):
            return self._user_id()
        return self._user_id

    def stamp(self, professional_id: Optional[str], source_demand_id: Optional[str] = None) -> Assignment:
        """Assignment stamped with the current time and user."""
        return Assignment(
            professional_id=professional_id,
            source_demand_id=source_demand_id,
            modified_at=self.now(),
            modified_by=self.current_user(),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check(self, key: Any, assignment: Any, check_lock: bool = True) -> Optional[str]:
        """Return the reason an entry is invalid, or None."""
        try:
            parts = parse_assignment_key(key)
        except ValueError as e:
            return str(e)
        if check_lock and self.is_locked(parts.day):
            return f"day {parts.day.isoformat()} is locked (before {self.min_editable_date.isoformat()})"
        if not isinstance(assignment, Assignment):
            return f"expected Assignment, got {type(assignment).__name__}"
        if assignment.professional_id is not None and (
            not isinstance(assignment.professional_id, str) or not assignment.professional_id
        ):
            return f"invalid professional_id {assignment.professional_id!r}"
        if assignment.source_demand_id is not None and not isinstance(assignment.source_demand_id, str):
            return f"invalid source_demand_id {assignment.source_demand_id!r}"
        return None

    def _validate(self, entries: Iterable[Tuple[Any, Any]], check_lock: bool = True) -> None:
        failures = []
        for key, assignment in entries:
            reason = self._check(key, assignment, check_lock=check_lock)
            if reason:
                failures.append(KeyFailure(key=str(key), reason=reason))
        if failures:
            raise ValidationError(failures)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(self, key: str, assignment: Assignment, label: Optional[str] = None) -> None:
        self._validate([(key, assignment)])
        self._apply([(key, assignment)], label or f"Set {key}")

    def clear(self, key: str, label: Optional[str] = None) -> None:
        self.set(key, self.stamp(None), label=label or f"Clear {key}")

    def set_many(self, entries: Sequence[Tuple[str, Assignment]], label: Optional[str] = None) -> None:
        """Apply all entries as one undoable batch, or none of them."""
        entries = list(entries)
        if not entries:
            return
        self._validate(entries)
        self._apply(entries, label or f"Batch: {len(entries)} cells")

    def _restamped(self, current: Optional[Assignment], professional_id: Optional[str]) -> Assignment:
        if current is None:
            return self.stamp(professional_id)
        return replace(
            current,
            professional_id=professional_id,
            modified_at=self.now(),
            modified_by=self.current_user(),
        )

    def _swap_entries(self, key_a: str, key_b: str) -> List[Tuple[str, Assignment]]:
        current_a, current_b = self.get(key_a), self.get(key_b)
        prof_a = current_a.professional_id if current_a else None
        prof_b = current_b.professional_id if current_b else None
        if prof_a == prof_b:
            return []
        return [
            (key_a, self._restamped(current_a, prof_b)),
            (key_b, self._restamped(current_b, prof_a)),
        ]

    def swap(self, key_a: str, key_b: str, label: Optional[str] = None) -> None:
        """Exchange the professionals of two cells in one checkpoint."""
        if key_a == key_b:
            return
        self._validate([(key_a, self.stamp(None)), (key_b, self.stamp(None))])
        self.set_many(self._swap_entries(key_a, key_b), label=label or f"Swap {key_a} <-> {key_b}")

    def move(self, key_from: str, key_to: str, label: Optional[str] = None) -> None:
        """Move a cell's assignment to another cell; the source is left cleared."""
        if key_from == key_to:
            return
        self._validate([(key_from, self.stamp(None)), (key_to, self.stamp(None))])
        source = self.get(key_from)
        if source is None or source.is_empty:
            return
        self.set_many(
            [(key_to, self._restamped(source, source.professional_id)), (key_from, self.stamp(None))],
            label=label or f"Move {key_from} -> {key_to}",
        )

    def copy(self, key_from: str, key_to: str, label: Optional[str] = None) -> None:
        """Copy a cell's assignment (demand included) onto another cell."""
        if key_from == key_to:
            return
        self._validate([(key_from, self.stamp(None)), (key_to, self.stamp(None))])
        source = self.get(key_from)
        if source is None or source.is_empty:
            return
        self.set_many(
            [(key_to, self._restamped(source, source.professional_id))],
            label=label or f"Copy {key_from} -> {key_to}",
        )

    def _day_slots(self, patient_id: str, day: date) -> Set[int]:
        slots = set()
        for key in self._assignments:
            parts = parse_assignment_key(key)
            if parts.patient_id == patient_id and parts.day == day:
                slots.add(parts.slot_index)
        return slots

    def swap_days(self, patient_id: str, day_a: date, day_b: date, label: Optional[str] = None) -> None:
        """Exchange every slot of two days of one patient in one checkpoint."""
        if day_a == day_b:
            return
        self._validate([
            (assignment_key(patient_id, day_a, 0), self.stamp(None)),
            (assignment_key(patient_id, day_b, 0), self.stamp(None)),
        ])
        indices = self._day_slots(patient_id, day_a) | self._day_slots(patient_id, day_b)
        entries: List[Tuple[str, Assignment]] = []
        for index in sorted(indices):
            entries += self._swap_entries(
                assignment_key(patient_id, day_a, index),
                assignment_key(patient_id, day_b, index),
            )
        self.set_many(entries, label=label or f"Swap days {day_a.isoformat()} <-> {day_b.isoformat()}")

    def clear_range(
        self,
        patient_id: str,
        start: date,
        end: date,
        label: Optional[str] = None,
    ) -> List[str]:
        """
        Clear every assigned cell of a patient between two dates (inclusive).

        Locked days are kept as they are. Returns the cleared keys.
        """
        keys = []
        for key, assignment in sorted(self._assignments.items()):
            parts = parse_assignment_key(key)
            if (
                parts.patient_id == patient_id
                and start <= parts.day <= end
                and not self.is_locked(parts.day)
                and not assignment.is_empty
            ):
                keys.append(key)
        cleared = self.stamp(None)
        self.set_many([(k, cleared) for k in keys], label=label or f"Clear {start.isoformat()}..{end.isoformat()}")
        return keys

    def reset(self, mapping: AssignmentMap) -> None:
        """Replace the whole map (fresh server state). Clears history."""
        self._validate(mapping.items(), check_lock=False)
        self._assignments = dict(mapping)
        self._baseline = dict(mapping)
        self.history.clear()
        logger.info(f"Assignment store reset with {len(mapping)} entries")
        self._changed()

    def undo_last(self) -> bool:
        diffs = self.history.undo_last()
        if diffs is None:
            return False
        for diff in diffs:
            self._write(diff.key, diff.previous)
        logger.debug(f"Undid checkpoint covering {len(diffs)} key(s)")
        self._changed()
        return True

    def redo_last(self) -> bool:
        diffs = self.history.redo_last()
        if diffs is None:
            return False
        for diff in diffs:
            self._write(diff.key, diff.next)
        logger.debug(f"Redid checkpoint covering {len(diffs)} key(s)")
        self._changed()
        return True

    def mark_saved(self, snapshot: Optional[AssignmentMap] = None) -> None:
        """Make `snapshot` (default: current map) the clean baseline."""
        self._baseline = dict(snapshot if snapshot is not None else self._assignments)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, key: str, value: Optional[Assignment]) -> None:
        if value is None:
            self._assignments.pop(key, None)
        else:
            self._assignments[key] = value

    def _apply(self, entries: List[Tuple[str, Assignment]], label: str) -> None:
        at = self.now()
        diffs = []
        for key, assignment in entries:
            diffs.append(KeyDiff(key=key, previous=self._assignments.get(key), next=assignment, at=at))
            self._assignments[key] = assignment
        checkpoint_id = self.history.record(diffs, label=label)
        logger.debug(f"Checkpoint {checkpoint_id} ({label}): {len(diffs)} key(s)")
        self._changed()

    def _changed(self) -> None:
        self._revision += 1
        for listener in list(self._listeners):
            listener(self)
