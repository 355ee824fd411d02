"""
Shift Grid — patient schedule assignment engine

Modules:
- slots: regimes, slot layouts, slot times
- keys: assignment key build/parse
- store: assignment store (owned map, validation, undo/redo)
- history: checkpointed change log
- selection: batch selection and presets
- autofill: auto-fill proposals and week copy
- persistence: schedule service client and save coordination
- summary / exporter: per-professional totals, CSV/Excel/text export
"""

from .slots import (
    Regime,
    Slot,
    SlotDescriptor,
    SLOTS_BY_REGIME,
    slots_for_regime,
    slot_times,
    regime_for_demand,
)
from .keys import assignment_key, parse_assignment_key, KeyParts
from .errors import (
    ScheduleError,
    ValidationError,
    UnknownPresetError,
    PersistenceError,
    KeyFailure,
)
from .history import HistoryLog, KeyDiff, Checkpoint
from .store import Assignment, AssignmentStore
from .selection import BatchSelectionEngine, SelectionContext
from .autofill import AutoFillConfig, AutoFillEngine, OverwritePolicy
from .persistence import ScheduleApiClient, SaveCoordinator, SaveState
from .summary import summarize

__all__ = [
    "Regime",
    "Slot",
    "SlotDescriptor",
    "SLOTS_BY_REGIME",
    "slots_for_regime",
    "slot_times",
    "regime_for_demand",
    "assignment_key",
    "parse_assignment_key",
    "KeyParts",
    "ScheduleError",
    "ValidationError",
    "UnknownPresetError",
    "PersistenceError",
    "KeyFailure",
    "HistoryLog",
    "KeyDiff",
    "Checkpoint",
    "Assignment",
    "AssignmentStore",
    "BatchSelectionEngine",
    "SelectionContext",
    "AutoFillConfig",
    "AutoFillEngine",
    "OverwritePolicy",
    "ScheduleApiClient",
    "SaveCoordinator",
    "SaveState",
    "summarize",
]
