"""
Tests for slot layouts and assignment keys
"""

from datetime import date, datetime

import pytest

from shift_grid.keys import KeyParts, assignment_key, parse_assignment_key
from shift_grid.slots import (
    Regime,
    iter_days,
    regime_for_demand,
    slot_times,
    slots_for_regime,
)


class TestSlotsForRegime:

    def test_slot_counts(self):
        assert len(slots_for_regime(Regime.H24)) == 1
        assert len(slots_for_regime(Regime.H12)) == 2
        assert len(slots_for_regime(Regime.H8)) == 3

    def test_accepts_string_value(self):
        assert [s.slot_type for s in slots_for_regime("12h")] == ["12h_day", "12h_night"]

    def test_slots_cover_the_whole_day(self):
        for regime in Regime:
            slots = slots_for_regime(regime)
            assert sum(s.duration_hours for s in slots) == 24
            offsets = [s.offset_hours for s in slots]
            assert offsets == sorted(offsets)
            assert offsets[0] == 0

    def test_unknown_regime_is_value_error(self):
        with pytest.raises(ValueError):
            slots_for_regime("6h")


class TestSlotTimes:

    def test_12h_night_ends_next_day(self):
        start, end = slot_times(Regime.H12, 1, date(2024, 1, 31), "07:00")
        assert start == datetime(2024, 1, 31, 19, 0)
        assert end == datetime(2024, 2, 1, 7, 0)

    def test_8h_afternoon(self):
        start, end = slot_times("8h", 1, date(2024, 3, 10), "06:30")
        assert start == datetime(2024, 3, 10, 14, 30)
        assert end == datetime(2024, 3, 10, 22, 30)

    def test_24h(self):
        start, end = slot_times(Regime.H24, 0, date(2024, 1, 1))
        assert (end - start).total_seconds() == 24 * 3600

    def test_out_of_range_index(self):
        with pytest.raises(IndexError):
            slot_times(Regime.H12, 2, date(2024, 1, 1))

    def test_bad_start_time(self):
        with pytest.raises(ValueError):
            slot_times(Regime.H12, 0, date(2024, 1, 1), "25:00")


class TestRegimeForDemand:

    @pytest.mark.parametrize("hours,split,expected", [
        (24, False, Regime.H24),
        (24, True, Regime.H12),
        (12, False, Regime.H12),
        (8, False, Regime.H8),
        (None, False, Regime.H24),
        (6, False, Regime.H24),
    ])
    def test_mapping(self, hours, split, expected):
        assert regime_for_demand(hours, split) is expected


class TestIterDays:

    def test_inclusive(self):
        days = list(iter_days(date(2024, 2, 27), date(2024, 3, 1)))
        assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_reversed_is_empty(self):
        assert list(iter_days(date(2024, 1, 2), date(2024, 1, 1))) == []


class TestAssignmentKey:

    @pytest.mark.parametrize("patient_id,day,slot_index", [
        ("p1", date(2024, 1, 1), 0),
        ("3f1c9a7e-1b2c-4d5e-8f90-123456789abc", date(2023, 12, 31), 2),
        ("odd|patient", date(2024, 2, 29), 1),
    ])
    def test_round_trip(self, patient_id, day, slot_index):
        key = assignment_key(patient_id, day, slot_index)
        assert parse_assignment_key(key) == KeyParts(patient_id, day, slot_index)

    def test_format(self):
        assert assignment_key("p1", date(2024, 1, 5), 1) == "p1|2024-01-05|1"

    @pytest.mark.parametrize("bad", [
        "",
        "p1|2024-01-01",
        "|2024-01-01|0",
        "p1|2024-13-01|0",
        "p1|2024-01-01|-1",
        "p1|2024-01-01|x",
        "p1|2024-01-01|01",
        "p1|20240101|1",
        "p1|2024-01-01| 1",
    ])
    def test_malformed_keys(self, bad):
        with pytest.raises(ValueError):
            parse_assignment_key(bad)

    def test_rejects_bad_components(self):
        with pytest.raises(ValueError):
            assignment_key("", date(2024, 1, 1), 0)
        with pytest.raises(ValueError):
            assignment_key("p1", date(2024, 1, 1), -1)
        with pytest.raises(ValueError):
            assignment_key("p1", datetime(2024, 1, 1, 5), 0)
        with pytest.raises(ValueError):
            assignment_key("p1", "2024-01-01", 0)
