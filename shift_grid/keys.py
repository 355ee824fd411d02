"""
keys.py — Assignment keys

A key identifies one (patient, day, slot) cell:

    "<patient_id>|<yyyy-mm-dd>|<slot_index>"

Patient ids are opaque; the key is split from the right so an id that
happens to contain the separator still round-trips. Only the canonical
spelling is accepted (no zero-padded slots, no basic-format dates), so a
cell has exactly one key.
"""

from datetime import date, datetime
from typing import NamedTuple

KEY_SEPARATOR = "|"


class KeyParts(NamedTuple):
    patient_id: str
    day: date
    slot_index: int


def assignment_key(patient_id: str, day: date, slot_index: int) -> str:
    if not patient_id:
        raise ValueError("patient_id must not be empty")
    if not isinstance(day, date) or isinstance(day, datetime):
        raise ValueError(f"day must be a date, got {type(day).__name__}")
    if isinstance(slot_index, bool) or not isinstance(slot_index, int) or slot_index < 0:
        raise ValueError(f"slot_index must be a non-negative integer, got {slot_index!r}")
    return f"{patient_id}{KEY_SEPARATOR}{day.isoformat()}{KEY_SEPARATOR}{slot_index}"


def parse_assignment_key(key: str) -> KeyParts:
    """Inverse of assignment_key. Raises ValueError on malformed keys."""
    if not isinstance(key, str):
        raise ValueError(f"Assignment key must be a string, got {type(key).__name__}")
    parts = key.rsplit(KEY_SEPARATOR, 2)
    if len(parts) != 3:
        raise ValueError(f"Malformed assignment key {key!r}")
    patient_id, day_str, index_str = parts
    if not patient_id:
        raise ValueError(f"Malformed assignment key {key!r}: empty patient id")
    try:
        day = date.fromisoformat(day_str)
    except ValueError:
        raise ValueError(f"Malformed assignment key {key!r}: bad date {day_str!r}")
    if not (index_str.isascii() and index_str.isdigit()):
        raise ValueError(f"Malformed assignment key {key!r}: bad slot index {index_str!r}")
    result = KeyParts(patient_id, day, int(index_str))
    if assignment_key(*result) != key:
        raise ValueError(f"Assignment key {key!r} is not in canonical form")
    return result
