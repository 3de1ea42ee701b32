"""Tests for weekday schedule configuration and date overrides."""

import pytest

from gemach.errors import ConfigurationInvalid
from gemach.schemas.booking_schema import Weekday
from gemach.tools.schedule import (
    block_date,
    day_schedule_for,
    effective_slots,
    get_schedule_config,
    list_date_overrides,
    set_day_schedule,
    unblock_date,
)
from tests.conftest import NEXT_WEDNESDAY, SATURDAY, TODAY, WEDNESDAY


class TestDaySchedules:
    def test_defaults_to_canonical_slots(self, store):
        schedule = get_schedule_config(store)[Weekday.WEDNESDAY]
        assert schedule.enabled
        assert schedule.slots == ["11:30 AM", "11:45 AM", "12:00 PM", "12:15 PM"]
        assert schedule.last_slot == "12:15 PM"

    def test_config_covers_every_weekday(self, store):
        config = get_schedule_config(store)
        assert set(config) == {Weekday.WEDNESDAY, Weekday.SATURDAY}

    def test_disable_weekday(self, store):
        set_day_schedule(store, "wednesday", enabled=False)
        assert not get_schedule_config(store)[Weekday.WEDNESDAY].enabled
        assert effective_slots(store, WEDNESDAY).slots == []

    def test_disable_keeps_slot_list(self, store):
        set_day_schedule(store, Weekday.SATURDAY, enabled=False)
        schedule = set_day_schedule(store, Weekday.SATURDAY, enabled=True)
        assert len(schedule.slots) == 8

    def test_replace_slots(self, store):
        set_day_schedule(store, Weekday.WEDNESDAY, True, ["11:30 AM", "11:45 AM"])
        schedule = day_schedule_for(store, WEDNESDAY)
        assert schedule.slots == ["11:30 AM", "11:45 AM"]
        assert schedule.last_slot == "11:45 AM"

    def test_day_schedule_for_closed_day(self, store):
        assert day_schedule_for(store, TODAY) is None

    def test_unknown_weekday(self, store):
        with pytest.raises(ConfigurationInvalid, match="Unknown weekday"):
            set_day_schedule(store, "monday", enabled=True)

    def test_rejects_unparseable_slot(self, store):
        with pytest.raises(ConfigurationInvalid):
            set_day_schedule(store, Weekday.WEDNESDAY, True, ["noon"])

    def test_rejects_out_of_order_slots(self, store):
        with pytest.raises(ConfigurationInvalid, match="chronological"):
            set_day_schedule(store, Weekday.WEDNESDAY, True, ["12:00 PM", "11:30 AM"])

    def test_rejects_duplicate_slots(self, store):
        with pytest.raises(ConfigurationInvalid, match="twice"):
            set_day_schedule(store, Weekday.WEDNESDAY, True, ["11:30 AM", "11:30 AM"])

    def test_rejects_slot_outside_canonical_grid(self, store):
        with pytest.raises(ConfigurationInvalid, match="not offered on Wednesday"):
            set_day_schedule(store, Weekday.WEDNESDAY, True, ["11:00 AM", "11:30 AM"])
        assert get_schedule_config(store)[Weekday.WEDNESDAY].slots[0] == "11:30 AM"

    def test_rejects_other_weekdays_slot(self, store):
        with pytest.raises(ConfigurationInvalid, match="not offered"):
            set_day_schedule(store, Weekday.WEDNESDAY, True, ["11:30 AM", "8:00 PM"])

    def test_rejected_update_leaves_schedule_untouched(self, store):
        with pytest.raises(ConfigurationInvalid):
            set_day_schedule(store, Weekday.WEDNESDAY, False, ["bad"])
        assert get_schedule_config(store)[Weekday.WEDNESDAY].enabled


class TestDateOverrides:
    def test_block_whole_day(self, store):
        override = block_date(store, WEDNESDAY, reason="Yom Tov")
        assert override.whole_day
        effective = effective_slots(store, WEDNESDAY)
        assert effective.blocked
        assert effective.slots == []
        assert effective.reason == "Yom Tov"

    def test_block_specific_slots(self, store):
        block_date(store, SATURDAY, slots=["7:30 PM", "7:45 PM"])
        effective = effective_slots(store, SATURDAY)
        assert not effective.blocked
        assert "7:30 PM" not in effective.slots
        assert effective.slots[0] == "8:00 PM"

    def test_blocking_twice_replaces_override(self, store):
        block_date(store, WEDNESDAY, reason="first")
        block_date(store, WEDNESDAY, reason="second", slots=["11:30 AM"])
        overrides = list_date_overrides(store)
        assert len(overrides) == 1
        assert overrides[0].reason == "second"
        assert overrides[0].blocked_slots == ["11:30 AM"]

    def test_block_is_idempotent(self, store):
        block_date(store, WEDNESDAY, reason="Yom Tov")
        block_date(store, WEDNESDAY, reason="Yom Tov")
        assert len(list_date_overrides(store)) == 1
        assert effective_slots(store, WEDNESDAY).blocked

    def test_unblock(self, store):
        block_date(store, WEDNESDAY)
        assert unblock_date(store, WEDNESDAY)
        assert list_date_overrides(store) == []
        assert len(effective_slots(store, WEDNESDAY).slots) == 4

    def test_unblock_without_override(self, store):
        assert not unblock_date(store, WEDNESDAY)

    def test_slot_block_on_closed_day_rejected(self, store):
        with pytest.raises(ConfigurationInvalid):
            block_date(store, TODAY, slots=["11:30 AM"])

    def test_unknown_slot_block_rejected(self, store):
        with pytest.raises(ConfigurationInvalid, match="not offered"):
            block_date(store, WEDNESDAY, slots=["1:00 PM"])

    def test_whole_day_block_on_closed_day_allowed(self, store):
        block_date(store, TODAY, reason="office closed")
        assert [o.date_str for o in list_date_overrides(store)] == [TODAY.isoformat()]

    def test_list_from_date(self, store):
        block_date(store, WEDNESDAY)
        block_date(store, NEXT_WEDNESDAY)
        upcoming = list_date_overrides(store, from_date=SATURDAY)
        assert [o.date_str for o in upcoming] == [NEXT_WEDNESDAY.isoformat()]

    def test_disabled_weekday_beats_override(self, store):
        block_date(store, WEDNESDAY, slots=["11:30 AM"])
        set_day_schedule(store, Weekday.WEDNESDAY, enabled=False)
        effective = effective_slots(store, WEDNESDAY)
        assert effective.slots == []
        assert not effective.blocked
