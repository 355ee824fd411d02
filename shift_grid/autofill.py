"""
autofill.py — Auto-fill proposals for the schedule grid

Algorithm:
  For each day in config.date_range (inclusive) whose weekday is enabled and
  which is not locked, and for each slot index in config.slot_indices:
    key = assignment_key(patient, day, slot)
    include the key if the overwrite policy accepts its current value.

  skip-occupied                 only absent or cleared cells
  overwrite-all                 every cell in range
  overwrite-empty-source-only   cells without a source demand (absent counts)

Professionals come from config.rotation when given: each professional
covers `days_per_professional` consecutive eligible days, then the next one
takes over, wrapping around. Without a rotation every cell gets
config.professional_id.

propose() only computes the batch (ordered by day, then slot index).
Callers apply it with store.set_many(), or call apply() to do both.
A reversed range or an empty slot set yields an empty batch.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Union

from shift_grid.errors import KeyFailure, ValidationError
from shift_grid.keys import assignment_key
from shift_grid.slots import Regime, iter_days, slots_for_regime, to_regime
from shift_grid.store import Assignment, AssignmentStore

logger = logging.getLogger(__name__)

Batch = List[Tuple[str, Assignment]]

ALL_WEEKDAYS: FrozenSet[int] = frozenset(range(7))


class OverwritePolicy(Enum):
    SKIP_OCCUPIED = "skip-occupied"
    OVERWRITE_ALL = "overwrite-all"
    OVERWRITE_EMPTY_SOURCE_ONLY = "overwrite-empty-source-only"


@dataclass(frozen=True)
class AutoFillConfig:
    professional_id: str
    regime: Union[Regime, str]
    date_range: Tuple[date, date]
    slot_indices: FrozenSet[int]
    overwrite_policy: Union[OverwritePolicy, str] = OverwritePolicy.SKIP_OCCUPIED
    rotation: Tuple[str, ...] = ()
    days_per_professional: int = 1
    weekdays: FrozenSet[int] = ALL_WEEKDAYS   # date.weekday(): Monday=0
    source_demand_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "regime", to_regime(self.regime))
        object.__setattr__(self, "overwrite_policy", OverwritePolicy(self.overwrite_policy))
        object.__setattr__(self, "slot_indices", frozenset(self.slot_indices))
        object.__setattr__(self, "rotation", tuple(self.rotation))
        object.__setattr__(self, "weekdays", frozenset(self.weekdays))
        if self.days_per_professional < 1:
            raise ValueError("days_per_professional must be at least 1")

    @property
    def professionals(self) -> Tuple[str, ...]:
        return self.rotation or (self.professional_id,)


def is_eligible(current: Optional[Assignment], policy: OverwritePolicy) -> bool:
    """Whether a cell holding `current` may be written under `policy`."""
    if policy is OverwritePolicy.OVERWRITE_ALL:
        return True
    if current is None:
        return True
    if policy is OverwritePolicy.SKIP_OCCUPIED:
        return current.professional_id is None
    return current.source_demand_id is None


class AutoFillEngine:

    def __init__(self, store: AssignmentStore):
        self.store = store

    def propose(self, patient_id: str, config: AutoFillConfig) -> Batch:
        start, end = config.date_range
        if end < start or not config.slot_indices:
            return []

        slot_count = len(slots_for_regime(config.regime))
        bad_indices = sorted(
            (i for i in config.slot_indices if not isinstance(i, int) or not 0 <= i < slot_count),
            key=repr,
        )
        if bad_indices:
            raise ValidationError(
                KeyFailure(key=f"slot_index={i!r}", reason=f"not a slot of regime {config.regime.value}")
                for i in bad_indices
            )

        days = [
            d for d in iter_days(start, end)
            if d.weekday() in config.weekdays and not self.store.is_locked(d)
        ]
        professionals = config.professionals
        indices = sorted(config.slot_indices)
        at = self.store.now()
        user = self.store.current_user()

        batch: Batch = []
        for position, day in enumerate(days):
            professional_id = professionals[(position // config.days_per_professional) % len(professionals)]
            for index in indices:
                key = assignment_key(patient_id, day, index)
                if not is_eligible(self.store.get(key), config.overwrite_policy):
                    continue
                batch.append((key, Assignment(
                    professional_id=professional_id,
                    source_demand_id=config.source_demand_id,
                    modified_at=at,
                    modified_by=user,
                )))

        logger.info(
            f"Auto-fill proposal for {patient_id}: {len(batch)} cell(s) over {len(days)} day(s) "
            f"[{config.overwrite_policy.value}]"
        )
        return batch

    def apply(self, patient_id: str, config: AutoFillConfig, label: str = "Auto-fill") -> Batch:
        batch = self.propose(patient_id, config)
        self.store.set_many(batch, label=label)
        return batch

    def propose_week_copy(
        self,
        patient_id: str,
        regime: Union[Regime, str],
        week_start: date,
        until: date,
    ) -> Batch:
        """
        Copy the 7 days from week_start onto every following week up to `until`.

        Target cells whose source cell is absent or cleared are cleared, so
        each copied week mirrors the source week. Pairs where either day is
        locked are skipped; a locked week_start copies nothing.
        """
        if self.store.is_locked(week_start):
            return []
        slot_count = len(slots_for_regime(regime))
        at = self.store.now()
        user = self.store.current_user()

        batch: Batch = []
        weeks = 1
        while week_start + timedelta(days=7 * weeks) <= until:
            for offset in range(7):
                source_day = week_start + timedelta(days=offset)
                target_day = source_day + timedelta(days=7 * weeks)
                if target_day > until or self.store.is_locked(source_day) or self.store.is_locked(target_day):
                    continue
                for index in range(slot_count):
                    source = self.store.get(assignment_key(patient_id, source_day, index))
                    target_key = assignment_key(patient_id, target_day, index)
                    if source is not None and not source.is_empty:
                        batch.append((target_key, replace(source, modified_at=at, modified_by=user)))
                        continue
                    target = self.store.get(target_key)
                    if target is not None and not target.is_empty:
                        batch.append((target_key, Assignment(None, modified_at=at, modified_by=user)))
            weeks += 1
        return batch
