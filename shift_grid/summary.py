"""
summary.py — Per-professional totals for a patient's month

Used by the sidebar counter and by the exported report:
  slots  number of assigned cells
  days   distinct days with at least one cell
  hours  slot hours summed from the regime layout
Cleared cells (professional_id None) are ignored.
"""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from shift_grid.keys import parse_assignment_key
from shift_grid.slots import Regime, slots_for_regime
from shift_grid.store import Assignment


def summarize(
    assignments: Iterable[Tuple[str, Assignment]],
    regime: Union[Regime, str],
    names: Optional[Dict[str, str]] = None,
) -> List[Dict[str, Any]]:
    """
    Args:
        assignments: (key, Assignment) pairs, e.g. store.items()
        regime:      regime used to look up slot durations
        names:       optional professional_id → display name

    Returns:
        One dict per professional, busiest first.
    """
    slots = slots_for_regime(regime)
    names = names or {}
    slot_counts: Dict[str, int] = {}
    hours: Dict[str, int] = {}
    days: Dict[str, Set[str]] = {}

    for key, assignment in assignments:
        if assignment.professional_id is None:
            continue
        parts = parse_assignment_key(key)
        prof = assignment.professional_id
        slot_counts[prof] = slot_counts.get(prof, 0) + 1
        duration = slots[parts.slot_index].duration_hours if parts.slot_index < len(slots) else 0
        hours[prof] = hours.get(prof, 0) + duration
        days.setdefault(prof, set()).add(parts.day.isoformat())

    rows = [
        {
            "professional_id":   prof,
            "professional_name": names.get(prof, prof),
            "slots":             slot_counts[prof],
            "days":              len(days[prof]),
            "hours":             hours[prof],
        }
        for prof in slot_counts
    ]
    rows.sort(key=lambda r: (-r["slots"], r["professional_name"]))
    return rows
