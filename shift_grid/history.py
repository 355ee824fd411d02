"""
history.py — Checkpointed change log for the assignment grid

Every store mutation is recorded as one checkpoint holding the key-level
diffs it made. A single-cell edit is a one-diff checkpoint; a batch
(auto-fill, bulk assign, swap) is one checkpoint with many diffs, so one
undo reverts the whole batch.

The log never touches the assignment map. undo_last()/redo_last() hand the
diffs back and the store applies them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from shift_grid.config import MAX_HISTORY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyDiff:
    key: str
    previous: Optional[Any]   # Assignment, or None when the key was absent
    next: Optional[Any]       # Assignment, or None when the key is removed
    at: datetime


# One row of the "who changed what when" view
HistoryEntry = KeyDiff


@dataclass(frozen=True)
class Checkpoint:
    checkpoint_id: int
    label: str
    diffs: Tuple[KeyDiff, ...]
    at: datetime


class HistoryLog:

    def __init__(self, max_checkpoints: int = MAX_HISTORY):
        if max_checkpoints < 1:
            raise ValueError("max_checkpoints must be at least 1")
        self.max_checkpoints = max_checkpoints
        self._done: List[Checkpoint] = []
        self._undone: List[Checkpoint] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._done)

    @property
    def can_undo(self) -> bool:
        return bool(self._done)

    @property
    def can_redo(self) -> bool:
        return bool(self._undone)

    def record(self, diffs: Sequence[KeyDiff], label: str = "") -> int:
        """Append a checkpoint and return its id. Drops the redo stack."""
        if not diffs:
            raise ValueError("Cannot record an empty checkpoint")
        checkpoint = Checkpoint(
            checkpoint_id=self._next_id,
            label=label,
            diffs=tuple(diffs),
            at=diffs[-1].at,
        )
        self._next_id += 1
        self._done.append(checkpoint)
        self._undone.clear()

        overflow = len(self._done) - self.max_checkpoints
        if overflow > 0:
            del self._done[:overflow]
            logger.debug(f"History cap reached, dropped {overflow} oldest checkpoint(s)")
        return checkpoint.checkpoint_id

    def undo_last(self) -> Optional[List[KeyDiff]]:
        """
        Pop the newest checkpoint.

        Returns its diffs newest-first so restoring each diff's `previous`
        in order lands on the pre-checkpoint state, or None if empty.
        """
        if not self._done:
            return None
        checkpoint = self._done.pop()
        self._undone.append(checkpoint)
        return list(reversed(checkpoint.diffs))

    def redo_last(self) -> Optional[List[KeyDiff]]:
        """Re-enable the most recently undone checkpoint; caller reapplies `next`."""
        if not self._undone:
            return None
        checkpoint = self._undone.pop()
        self._done.append(checkpoint)
        return list(checkpoint.diffs)

    def clear(self) -> None:
        self._done.clear()
        self._undone.clear()

    def checkpoints(self) -> List[Checkpoint]:
        return list(self._done)

    def entries(self) -> List[HistoryEntry]:
        """All recorded diffs, oldest first."""
        return [diff for checkpoint in self._done for diff in checkpoint.diffs]
