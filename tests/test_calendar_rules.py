"""Tests for the fixed weekday calendar."""

from gemach.schemas.booking_schema import Weekday
from gemach.tools.calendar_rules import (
    CANONICAL_SLOTS,
    is_valid_slot,
    last_canonical_slot,
    slots_for,
    weekday_for,
    within_window,
)
from tests.conftest import SATURDAY, TODAY, WEDNESDAY


class TestWeekdayFor:
    def test_wednesday(self):
        assert weekday_for(WEDNESDAY) == Weekday.WEDNESDAY

    def test_saturday(self):
        assert weekday_for(SATURDAY) == Weekday.SATURDAY

    def test_monday_is_closed(self):
        assert weekday_for(TODAY) is None


class TestSlotsFor:
    def test_wednesday_slots(self):
        assert slots_for(WEDNESDAY) == ["11:30 AM", "11:45 AM", "12:00 PM", "12:15 PM"]

    def test_saturday_has_eight_slots(self):
        slots = slots_for(SATURDAY)
        assert len(slots) == 8
        assert slots[0] == "7:30 PM"
        assert slots[-1] == "9:15 PM"

    def test_closed_day_has_no_slots(self):
        assert slots_for(TODAY) == []

    def test_returns_a_copy(self):
        slots_for(WEDNESDAY).append("1:00 PM")
        assert "1:00 PM" not in CANONICAL_SLOTS[Weekday.WEDNESDAY]


class TestValidity:
    def test_listed_slot_is_valid(self):
        assert is_valid_slot(WEDNESDAY, "11:30 AM")

    def test_off_step_time_is_invalid(self):
        assert not is_valid_slot(WEDNESDAY, "11:35 AM")

    def test_other_weekday_slot_is_invalid(self):
        assert not is_valid_slot(WEDNESDAY, "7:30 PM")

    def test_nothing_is_valid_on_closed_day(self):
        assert not is_valid_slot(TODAY, "11:30 AM")

    def test_window_bounds(self):
        assert within_window(Weekday.WEDNESDAY, "11:30 AM")
        assert within_window(Weekday.WEDNESDAY, "12:15 PM")
        assert not within_window(Weekday.WEDNESDAY, "12:30 PM")
        assert not within_window(Weekday.SATURDAY, "7:15 PM")

    def test_window_rejects_non_time(self):
        assert not within_window(Weekday.SATURDAY, "late")

    def test_last_canonical_slot(self):
        assert last_canonical_slot(WEDNESDAY) == "12:15 PM"
        assert last_canonical_slot(SATURDAY) == "9:15 PM"
        assert last_canonical_slot(TODAY) is None
