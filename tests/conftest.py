"""
Shared fixtures: fixed clock, fresh store, sample assignments.
"""

import sys
from datetime import date, datetime
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from shift_grid.keys import assignment_key
from shift_grid.store import Assignment, AssignmentStore

PATIENT = "patient-1"
FIXED_NOW = datetime(2024, 1, 1, 12, 0)


def key(day: date, slot_index: int, patient_id: str = PATIENT) -> str:
    return assignment_key(patient_id, day, slot_index)


def assigned(professional_id, source_demand_id=None) -> Assignment:
    return Assignment(
        professional_id=professional_id,
        source_demand_id=source_demand_id,
        modified_at=FIXED_NOW,
        modified_by="user-1",
    )


@pytest.fixture
def store():
    return AssignmentStore(clock=lambda: FIXED_NOW, user_id="user-1")
