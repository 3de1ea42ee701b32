"""Tests for committing, cancelling, rescheduling and querying bookings."""

import threading
from datetime import date

import pytest

from gemach.db.store import Store
from gemach.errors import (
    NotFound,
    PartySizeExceeded,
    PartySizeRequiresLastSlot,
    SlotUnavailable,
)
from gemach.schemas.booking_schema import BookingStatus, BookingUpdate, ReminderKind, Weekday
from gemach.tools.availability import free_slots_for
from gemach.tools.booking import (
    active_booking_for_phone,
    booking_id_for,
    bookings_for_date,
    bookings_in_range,
    bookings_needing_day_before_reminder,
    bookings_needing_return_reminder,
    cancel_booking,
    create_booking,
    get_booking,
    list_bookings,
    mark_reminder_sent,
    reschedule_booking,
    update_booking,
)
from gemach.tools.customer import lookup_customer
from gemach.tools.schedule import block_date, set_day_schedule
from tests.conftest import (
    NEXT_WEDNESDAY,
    OTHER_PHONE,
    PHONE,
    SATURDAY,
    TODAY,
    WEDDING,
    WEDNESDAY,
    make_booking,
)


class TestCreateBooking:
    def test_commits_confirmed_booking(self, store):
        booking = make_booking(store)
        assert booking.id == "15551234567_202403061130"
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.slot_duration == 15
        assert booking.customer_phone == PHONE
        assert not booking.confirmation_sent
        assert get_booking(store, booking.id) == booking

    def test_creates_customer(self, store):
        make_booking(store, phone="555-123-4567", name="Sarah Cohen")
        customer = lookup_customer(store, PHONE)
        assert customer is not None
        assert customer.id == "15551234567"
        assert customer.name == "Sarah Cohen"

    def test_same_request_is_idempotent(self, store):
        first = make_booking(store)
        second = make_booking(store, phone="555-123-4567", party_size=3)
        assert second.id == first.id
        assert second.party_size == 2
        assert len(bookings_for_date(store, WEDNESDAY)) == 1

    def test_taken_slot_rejected(self, store):
        make_booking(store)
        with pytest.raises(SlotUnavailable) as exc_info:
            make_booking(store, phone=OTHER_PHONE)
        assert exc_info.value.slot_time == "11:30 AM"
        assert exc_info.value.appointment_date == WEDNESDAY

    def test_invalid_slot_rejected(self, store):
        with pytest.raises(SlotUnavailable):
            make_booking(store, slot_time="1:00 PM")

    def test_closed_day_rejected(self, store):
        with pytest.raises(SlotUnavailable):
            make_booking(store, appointment_date=TODAY)

    def test_blocked_date_rejected(self, store):
        block_date(store, WEDNESDAY, reason="Yom Tov")
        with pytest.raises(SlotUnavailable, match="Yom Tov"):
            make_booking(store)

    def test_blocked_slot_rejected(self, store):
        block_date(store, WEDNESDAY, slots=["11:30 AM"])
        with pytest.raises(SlotUnavailable):
            make_booking(store)
        assert make_booking(store, slot_time="11:45 AM").slot_time == "11:45 AM"

    def test_disabled_weekday_rejected(self, store):
        set_day_schedule(store, Weekday.WEDNESDAY, enabled=False)
        with pytest.raises(SlotUnavailable):
            make_booking(store)

    def test_cancelled_booking_can_be_rebooked(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        revived = make_booking(store, party_size=3)
        assert revived.id == booking.id
        assert revived.status == BookingStatus.CONFIRMED
        assert revived.party_size == 3

    def test_failed_create_writes_nothing(self, store):
        make_booking(store)
        with pytest.raises(SlotUnavailable):
            make_booking(store, phone=OTHER_PHONE, name="Leah")
        assert lookup_customer(store, OTHER_PHONE) is None


class TestPartySizeGate:
    def test_large_group_on_last_slot_gets_long_slot(self, store):
        booking = make_booking(store, slot_time="12:15 PM", party_size=5)
        assert booking.slot_duration == 30

    def test_max_group_on_saturday_last_slot(self, store):
        booking = make_booking(store, appointment_date=SATURDAY, slot_time="9:15 PM", party_size=6)
        assert booking.slot_duration == 30

    def test_large_group_needs_last_slot(self, store):
        with pytest.raises(PartySizeRequiresLastSlot) as exc_info:
            make_booking(store, slot_time="11:30 AM", party_size=5)
        assert exc_info.value.required_slot == "12:15 PM"
        assert exc_info.value.party_size == 5

    def test_standard_group_anywhere(self, store):
        assert make_booking(store, slot_time="12:00 PM", party_size=4).slot_duration == 15

    def test_too_many_people(self, store):
        with pytest.raises(PartySizeExceeded) as exc_info:
            make_booking(store, slot_time="12:15 PM", party_size=7)
        assert exc_info.value.max_party_size == 6

    def test_zero_people(self, store):
        with pytest.raises(PartySizeExceeded):
            make_booking(store, party_size=0)

    def test_last_slot_follows_configured_schedule(self, store):
        set_day_schedule(store, Weekday.WEDNESDAY, True, ["11:30 AM", "11:45 AM"])
        booking = make_booking(store, slot_time="11:45 AM", party_size=5)
        assert booking.slot_duration == 30

    def test_blocked_last_slot_is_still_the_large_group_slot(self, store):
        block_date(store, WEDNESDAY, slots=["12:15 PM"])
        with pytest.raises(PartySizeRequiresLastSlot) as exc_info:
            make_booking(store, slot_time="12:00 PM", party_size=5)
        assert exc_info.value.required_slot == "12:15 PM"


class TestConcurrentBooking:
    def test_one_winner_per_slot(self, store, db_url):
        """Two workers with separate store handles race for the last Wednesday slot."""
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(phone: str) -> None:
            worker_store = Store.from_url(db_url, create_tables=False)
            try:
                barrier.wait()
                make_booking(worker_store, phone=phone, slot_time="12:15 PM")
                result = "booked"
            except SlotUnavailable:
                result = "unavailable"
            finally:
                worker_store.dispose()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(p,)) for p in (PHONE, OTHER_PHONE)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["booked", "unavailable"]
        active = bookings_for_date(store, WEDNESDAY)
        assert len(active) == 1
        assert active[0].slot_time == "12:15 PM"


class TestCancelBooking:
    def test_cancel(self, store):
        booking = make_booking(store)
        cancelled = cancel_booking(store, booking.id)
        assert cancelled.status == BookingStatus.CANCELLED
        assert bookings_for_date(store, WEDNESDAY) == []

    def test_cancel_twice_is_harmless(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        assert cancel_booking(store, booking.id).status == BookingStatus.CANCELLED

    def test_cancel_unknown(self, store):
        with pytest.raises(NotFound):
            cancel_booking(store, "missing")

    def test_other_customer_can_take_cancelled_slot(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        assert make_booking(store, phone=OTHER_PHONE).slot_time == "11:30 AM"


class TestRescheduleBooking:
    def test_move_to_free_slot(self, store):
        booking = make_booking(store)
        mark_reminder_sent(store, booking.id, ReminderKind.DAY_BEFORE)
        moved = reschedule_booking(store, booking.id, NEXT_WEDNESDAY, "12:00 PM")
        assert moved.id == booking.id
        assert moved.appointment_date == NEXT_WEDNESDAY
        assert moved.slot_time == "12:00 PM"
        assert not moved.day_before_reminder_sent
        assert len(free_slots_for(store, WEDNESDAY)) == 4

    def test_taken_slot_leaves_booking_untouched(self, store):
        booking = make_booking(store)
        make_booking(store, phone=OTHER_PHONE, slot_time="11:45 AM")
        with pytest.raises(SlotUnavailable):
            reschedule_booking(store, booking.id, WEDNESDAY, "11:45 AM")
        assert get_booking(store, booking.id).slot_time == "11:30 AM"

    def test_same_slot_is_allowed(self, store):
        booking = make_booking(store)
        assert reschedule_booking(store, booking.id, WEDNESDAY, "11:30 AM").slot_time == "11:30 AM"

    def test_large_group_needs_new_last_slot(self, store):
        booking = make_booking(store, slot_time="12:15 PM", party_size=5)
        with pytest.raises(PartySizeRequiresLastSlot):
            reschedule_booking(store, booking.id, SATURDAY, "7:30 PM")
        moved = reschedule_booking(store, booking.id, SATURDAY, "9:15 PM")
        assert moved.slot_duration == 30

    def test_cancelled_booking_cannot_move(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        with pytest.raises(NotFound):
            reschedule_booking(store, booking.id, WEDNESDAY, "11:45 AM")

    def test_unknown_booking(self, store):
        with pytest.raises(NotFound):
            reschedule_booking(store, "missing", WEDNESDAY, "11:45 AM")


class TestUpdateBooking:
    def test_only_set_fields_change(self, store):
        booking = make_booking(store)
        updated = update_booking(store, booking.id, BookingUpdate(notes="prefers lace"))
        assert updated.notes == "prefers lace"
        assert updated.party_size == booking.party_size

    def test_pickup_and_return_stamp_times(self, store):
        booking = make_booking(store)
        picked = update_booking(store, booking.id, BookingUpdate(item_picked_up=True))
        assert picked.item_picked_up
        assert picked.item_picked_up_at is not None
        returned = update_booking(store, booking.id, BookingUpdate(item_returned=True))
        assert returned.item_returned_at is not None
        undone = update_booking(store, booking.id, BookingUpdate(item_picked_up=False))
        assert undone.item_picked_up_at is None

    def test_phone_is_normalized(self, store):
        booking = make_booking(store)
        updated = update_booking(store, booking.id, BookingUpdate(customer_phone="(347) 555-0101"))
        assert updated.customer_phone == OTHER_PHONE

    def test_status_cancel_frees_slot(self, store):
        booking = make_booking(store)
        update_booking(store, booking.id, BookingUpdate(status=BookingStatus.CANCELLED))
        assert bookings_for_date(store, WEDNESDAY) == []

    def test_reactivating_into_taken_slot_rejected(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        make_booking(store, phone=OTHER_PHONE)
        with pytest.raises(SlotUnavailable):
            update_booking(store, booking.id, BookingUpdate(status=BookingStatus.CONFIRMED))
        assert get_booking(store, booking.id).status == BookingStatus.CANCELLED

    def test_unknown_booking(self, store):
        with pytest.raises(NotFound):
            update_booking(store, "missing", BookingUpdate(notes="x"))


class TestQueries:
    def test_booking_id_is_deterministic(self):
        assert booking_id_for("555-123-4567", SATURDAY, "7:30 PM") == "15551234567_202403091930"
        assert booking_id_for(PHONE, SATURDAY, "7:30 PM") == booking_id_for("5551234567", SATURDAY, "7:30 PM")

    def test_range_is_chronological(self, store):
        make_booking(store, phone="555-000-0001", slot_time="12:00 PM")
        make_booking(store, phone="555-000-0002", slot_time="11:45 AM")
        make_booking(store, phone="555-000-0003", appointment_date=SATURDAY, slot_time="7:30 PM")
        result = bookings_in_range(store, WEDNESDAY, SATURDAY)
        assert [(b.appointment_date, b.slot_time) for b in result] == [
            (WEDNESDAY, "11:45 AM"), (WEDNESDAY, "12:00 PM"), (SATURDAY, "7:30 PM"),
        ]

    def test_get_unknown_booking(self, store):
        assert get_booking(store, "missing") is None

    def test_day_before_reminder_candidates(self, store):
        booking = make_booking(store)
        assert [b.id for b in bookings_needing_day_before_reminder(store, WEDNESDAY)] == [booking.id]
        mark_reminder_sent(store, booking.id, ReminderKind.DAY_BEFORE)
        assert bookings_needing_day_before_reminder(store, WEDNESDAY) == []

    def test_return_reminder_candidates(self, store):
        booking = make_booking(store)
        make_booking(store, phone=OTHER_PHONE, slot_time="11:45 AM", wedding_date=date(2024, 7, 1))
        assert [b.id for b in bookings_needing_return_reminder(store, WEDDING)] == [booking.id]
        update_booking(store, booking.id, BookingUpdate(item_returned=True))
        assert bookings_needing_return_reminder(store, WEDDING) == []

    def test_cancelled_bookings_get_no_return_reminder(self, store):
        booking = make_booking(store)
        cancel_booking(store, booking.id)
        assert bookings_needing_return_reminder(store, WEDDING) == []

    def test_active_booking_for_phone(self, store):
        make_booking(store)
        latest = make_booking(store, appointment_date=NEXT_WEDNESDAY)
        assert active_booking_for_phone(store, "555-123-4567").id == latest.id
        assert active_booking_for_phone(store, OTHER_PHONE) is None

    def test_list_filters(self, store):
        first = make_booking(store)
        second = make_booking(store, phone=OTHER_PHONE, slot_time="11:45 AM")
        update_booking(store, first.id, BookingUpdate(item_picked_up=True))
        update_booking(store, second.id, BookingUpdate(payment_received=True))
        cancel_booking(store, second.id)

        assert [b.id for b in list_bookings(store, outstanding_items=True)] == [first.id]
        assert [b.id for b in list_bookings(store, unpaid=True)] == [first.id]
        assert [b.id for b in list_bookings(store, status=BookingStatus.CANCELLED)] == [second.id]
        assert len(list_bookings(store, limit=1)) == 1

    def test_reminder_flag_is_idempotent(self, store):
        booking = make_booking(store)
        mark_reminder_sent(store, booking.id, ReminderKind.CONFIRMATION)
        again = mark_reminder_sent(store, booking.id, ReminderKind.CONFIRMATION)
        assert again.confirmation_sent

    def test_customer_id_is_phone_digits(self, store):
        booking = create_booking(
            store,
            name="Rivka",
            phone="347-555-0101",
            appointment_date=SATURDAY,
            slot_time="8:00 PM",
            party_size=3,
            wedding_date=WEDDING,
        )
        assert booking.customer_id == "13475550101"
        assert booking.customer_phone == OTHER_PHONE
