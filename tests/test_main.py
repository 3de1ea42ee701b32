"""Tests for the command-line reminder and schedule passes."""

from datetime import timedelta

from gemach.config import settings
from gemach.conversation.sessions import get_session, save_session
from gemach.schemas.booking_schema import BookingUpdate
from gemach.schemas.conversation_schema import CollectedFields, SessionState
from gemach.tools.booking import update_booking
from gemach.tools.schedule import block_date
from main import _run_reminders, _run_schedule
from tests.conftest import NOW, PHONE, SATURDAY, WEDNESDAY, make_booking


class TestReminderCommand:
    def test_prints_manager_notice_and_customer_reminder(self, store, capsys):
        make_booking(store)
        _run_reminders(store, WEDNESDAY - timedelta(days=1))
        out = capsys.readouterr().out
        assert f"--- To {settings.business.manager_phone} ---" in out
        assert "Tomorrow (Wednesday) Appointments (1)" in out
        assert f"--- To {PHONE} ---" in out
        assert "Sent 1 day-before and 0 return reminders; 0 failed." in out

    def test_purges_stale_sessions(self, store):
        save_session(store, PHONE, SessionState.COLLECTING_INFO, CollectedFields(), NOW - timedelta(days=30))
        _run_reminders(store, WEDNESDAY)
        assert get_session(store, PHONE, NOW - timedelta(days=30)) is None


class TestScheduleCommand:
    def test_lists_template_dates_and_blocks(self, store, capsys):
        make_booking(store, slot_time="11:30 AM")
        block_date(store, SATURDAY, reason="Shabbos Chazon")
        _run_schedule(store, WEDNESDAY)
        out = capsys.readouterr().out
        assert "Wednesday: 11:30 AM, 11:45 AM, 12:00 PM, 12:15 PM" in out
        assert "Wednesday, March 6: 11:45 AM, 12:00 PM, 12:15 PM" in out
        assert "Saturday, March 9: blocked (Shabbos Chazon)" in out
        assert f"{SATURDAY.isoformat()}: whole day Shabbos Chazon" in out

    def test_counts_gowns_out(self, store, capsys):
        booking = make_booking(store)
        update_booking(store, booking.id, BookingUpdate(item_picked_up=True))
        _run_schedule(store, WEDNESDAY)
        assert "Gowns out: 1 (taken out overall: 1)" in capsys.readouterr().out
