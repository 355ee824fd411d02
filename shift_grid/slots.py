"""
slots.py — Slot layout per care regime

A patient's day is split into the slots of its regime (shift pattern):

  24h:  [24h]                                  one full-day shift
  12h:  [12h_day, 12h_night]                   day / night
  8h:   [8h_morning, 8h_afternoon, 8h_night]   three 8-hour shifts

Slot offsets are measured from the demand's start time (default 07:00),
so a 12h regime starting at 07:00 yields 07:00–19:00 and 19:00–07:00(+1).
Slot indices are positions in SLOTS_BY_REGIME and never change.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union


class Regime(Enum):
    H24 = "24h"
    H12 = "12h"
    H8 = "8h"


@dataclass(frozen=True)
class SlotDescriptor:
    slot_type: str
    label: str
    offset_hours: int
    duration_hours: int


@dataclass(frozen=True, order=True)
class Slot:
    """One cell of the grid: a day and a slot index under a regime."""
    day: date
    slot_index: int
    regime: Regime


SLOTS_BY_REGIME: Dict[Regime, Tuple[SlotDescriptor, ...]] = {
    Regime.H24: (
        SlotDescriptor("24h", "Plantão 24h", 0, 24),
    ),
    Regime.H12: (
        SlotDescriptor("12h_day", "Diurno", 0, 12),
        SlotDescriptor("12h_night", "Noturno", 12, 12),
    ),
    Regime.H8: (
        SlotDescriptor("8h_morning", "Manhã", 0, 8),
        SlotDescriptor("8h_afternoon", "Tarde", 8, 8),
        SlotDescriptor("8h_night", "Noite", 16, 8),
    ),
}


def to_regime(regime: Union[Regime, str]) -> Regime:
    """Coerce '12h' / Regime.H12 to Regime. Unknown values raise ValueError."""
    if isinstance(regime, Regime):
        return regime
    return Regime(regime)


def slots_for_regime(regime: Union[Regime, str]) -> List[SlotDescriptor]:
    """Ordered slot layout for a regime."""
    return list(SLOTS_BY_REGIME[to_regime(regime)])


def regime_for_demand(hours_per_day: Optional[int], is_split: bool = False) -> Regime:
    """
    Map a care demand to its regime.

    12 hours/day, or 24 hours split into two shifts → 12h; 8 hours/day → 8h;
    anything else (including missing) → 24h.
    """
    hours = hours_per_day if hours_per_day is not None else 24
    if hours == 12 or (hours == 24 and is_split):
        return Regime.H12
    if hours == 8:
        return Regime.H8
    return Regime.H24


def _parse_start_time(start_time: str) -> Tuple[int, int]:
    try:
        hour_str, minute_str = start_time.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Invalid start time {start_time!r}, expected HH:MM")
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid start time {start_time!r}, expected HH:MM")
    return hour, minute


def slot_times(
    regime: Union[Regime, str],
    slot_index: int,
    day: date,
    start_time: str = "07:00",
) -> Tuple[datetime, datetime]:
    """
    Start/end timestamps of a slot on a given day.

    Night slots run past midnight and end on the following day.
    """
    slots = slots_for_regime(regime)
    if not 0 <= slot_index < len(slots):
        raise IndexError(f"Slot index {slot_index} out of range for regime {to_regime(regime).value}")
    hour, minute = _parse_start_time(start_time)
    descriptor = slots[slot_index]
    base = datetime(day.year, day.month, day.day, hour, minute)
    start = base + timedelta(hours=descriptor.offset_hours)
    end = start + timedelta(hours=descriptor.duration_hours)
    return start, end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Inclusive day iterator; yields nothing when end < start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
