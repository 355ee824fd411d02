"""
selection.py — Batch selection of grid cells

Tracks the cells currently selected for a bulk operation. Selection is
ephemeral view state: it is never persisted and never part of the
assignment map.

Selections come from:
  - select_range(a, b)      rectangle between two cells (argument order irrelevant)
  - apply_preset(name)      named rule evaluated against the visible range
  - toggle / select         manual picking

Presets (built in):
  full_month     every cell of the visible range
  full_week      Sunday–Saturday week around the anchor day (or range start)
  weekdays       Monday–Friday
  saturdays, sundays
  even_days, odd_days       by day-of-month
  morning_slots  slots that start before noon

Every result is clamped to the visible range and drops locked days.
"""

import logging
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from shift_grid.config import DEFAULT_START_TIME
from shift_grid.errors import UnknownPresetError
from shift_grid.keys import assignment_key
from shift_grid.slots import Regime, Slot, iter_days, slot_times, slots_for_regime, to_regime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionContext:
    regime: Regime
    start: date
    end: date
    anchor: Optional[date] = None
    start_time: str = DEFAULT_START_TIME
    min_editable_date: Optional[date] = None

    def __post_init__(self):
        object.__setattr__(self, "regime", to_regime(self.regime))

    def days(self) -> List[date]:
        return list(iter_days(self.start, self.end))

    def slot_count(self) -> int:
        return len(slots_for_regime(self.regime))


Preset = Callable[[SelectionContext], Iterable[Slot]]


def _cells(
    context: SelectionContext,
    day_filter: Callable[[date], bool] = lambda d: True,
    slot_filter: Callable[[int], bool] = lambda i: True,
) -> Set[Slot]:
    return {
        Slot(day, index, context.regime)
        for day in context.days() if day_filter(day)
        for index in range(context.slot_count()) if slot_filter(index)
    }


def _full_week(context: SelectionContext) -> Set[Slot]:
    reference = context.anchor or context.start
    # date.weekday(): Monday=0 … Sunday=6; weeks here start on Sunday
    sunday = reference - timedelta(days=(reference.weekday() + 1) % 7)
    week = {sunday + timedelta(days=i) for i in range(7)}
    return _cells(context, day_filter=lambda d: d in week)


def _morning_slots(context: SelectionContext) -> Set[Slot]:
    def starts_before_noon(index: int) -> bool:
        start, _end = slot_times(context.regime, index, context.start, context.start_time)
        return start.date() == context.start and start.time() < time(12, 0)
    return _cells(context, slot_filter=starts_before_noon)


BUILTIN_PRESETS: Dict[str, Preset] = {
    "full_month":    lambda ctx: _cells(ctx),
    "full_week":     _full_week,
    "weekdays":      lambda ctx: _cells(ctx, day_filter=lambda d: d.weekday() < 5),
    "saturdays":     lambda ctx: _cells(ctx, day_filter=lambda d: d.weekday() == 5),
    "sundays":       lambda ctx: _cells(ctx, day_filter=lambda d: d.weekday() == 6),
    "even_days":     lambda ctx: _cells(ctx, day_filter=lambda d: d.day % 2 == 0),
    "odd_days":      lambda ctx: _cells(ctx, day_filter=lambda d: d.day % 2 == 1),
    "morning_slots": _morning_slots,
}


class BatchSelectionEngine:

    def __init__(self, context: SelectionContext, presets: Optional[Dict[str, Preset]] = None):
        self.context = context
        self._presets: Dict[str, Preset] = dict(BUILTIN_PRESETS)
        if presets:
            self._presets.update(presets)
        self.selected: Set[Slot] = set()

    @property
    def preset_names(self) -> List[str]:
        return sorted(self._presets)

    def register_preset(self, name: str, preset: Preset) -> None:
        self._presets[name] = preset

    def _clamp(self, slots: Iterable[Slot], context: SelectionContext) -> FrozenSet[Slot]:
        slot_count = context.slot_count()
        return frozenset(
            s for s in slots
            if context.start <= s.day <= context.end
            and 0 <= s.slot_index < slot_count
            and not (context.min_editable_date and s.day < context.min_editable_date)
        )

    def select_range(self, from_slot: Slot, to_slot: Slot) -> FrozenSet[Slot]:
        """Inclusive rectangle between two cells, clamped to the visible range."""
        ctx = self.context
        first_day, last_day = min(from_slot.day, to_slot.day), max(from_slot.day, to_slot.day)
        low, high = (
            min(from_slot.slot_index, to_slot.slot_index),
            max(from_slot.slot_index, to_slot.slot_index),
        )
        candidates = (
            Slot(day, index, ctx.regime)
            for day in iter_days(max(first_day, ctx.start), min(last_day, ctx.end))
            for index in range(low, high + 1)
        )
        selection = self._clamp(candidates, ctx)
        self.selected = set(selection)
        return selection

    def apply_preset(self, name: str, context: Optional[SelectionContext] = None) -> FrozenSet[Slot]:
        preset = self._presets.get(name)
        if preset is None:
            raise UnknownPresetError(name)
        ctx = context or self.context
        selection = self._clamp(preset(ctx), ctx)
        logger.debug(f"Preset {name!r} selected {len(selection)} cell(s)")
        self.selected = set(selection)
        return selection

    def toggle(self, slot: Slot) -> None:
        if slot in self.selected:
            self.selected.discard(slot)
        else:
            self.selected |= self._clamp([slot], self.context)

    def select(self, slots: Iterable[Slot]) -> FrozenSet[Slot]:
        selection = self._clamp(slots, self.context)
        self.selected = set(selection)
        return selection

    def clear(self) -> None:
        self.selected.clear()

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def assign_selected(
        self,
        store,
        patient_id: str,
        professional_id: Optional[str],
        source_demand_id: Optional[str] = None,
    ) -> List[Tuple[str, object]]:
        """Write one assignment to every selected cell as a single batch."""
        entries = [
            (assignment_key(patient_id, s.day, s.slot_index), store.stamp(professional_id, source_demand_id))
            for s in sorted(self.selected, key=lambda s: (s.day, s.slot_index))
        ]
        if not entries:
            return []
        label = f"Batch: {len(entries)} cells" if professional_id else f"Clear: {len(entries)} cells"
        store.set_many(entries, label=label)
        self.clear()
        return entries

    def clear_selected(self, store, patient_id: str) -> List[Tuple[str, object]]:
        return self.assign_selected(store, patient_id, None)
