"""
errors.py — Error taxonomy for the schedule grid

  ValidationError     batch rejected before any mutation (lists offending keys)
  UnknownPresetError  caller asked for a selection preset that is not registered
  PersistenceError    remote save/load failed; local state is kept, retry to recover

Unknown regimes are programming errors and surface as plain ValueError.
An auto-fill or selection that matches nothing is not an error.
"""

from dataclasses import dataclass
from typing import Iterable, List


class ScheduleError(Exception):
    """Base class for schedule grid errors."""


@dataclass(frozen=True)
class KeyFailure:
    key: str
    reason: str

    def __str__(self) -> str:
        return f"{self.key}: {self.reason}"


class ValidationError(ScheduleError):

    def __init__(self, failures: Iterable[KeyFailure]):
        self.failures: List[KeyFailure] = list(failures)
        summary = "; ".join(str(f) for f in self.failures[:5])
        more = f" (+{len(self.failures) - 5} more)" if len(self.failures) > 5 else ""
        super().__init__(f"{len(self.failures)} invalid assignment(s): {summary}{more}")

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.failures]


class UnknownPresetError(ScheduleError):

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown selection preset: {name!r}")


class PersistenceError(ScheduleError):

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)
