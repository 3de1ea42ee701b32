"""
Booking engine: validate and commit appointments against the slot ledger.

Each commit runs in one database transaction that re-reads the ledger
before writing. The partial unique index on bookings is the backstop: a
writer that loses a race gets ``SlotUnavailable``, never a double booking.
Cancel and reschedule are compensating transactions on the same rows.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gemach.config import settings
from gemach.db.models import BookingRow
from gemach.db.store import Store
from gemach.errors import (
    NotFound,
    PartySizeExceeded,
    PartySizeRequiresLastSlot,
    SlotUnavailable,
)
from gemach.schemas.booking_schema import Booking, BookingStatus, BookingUpdate, ReminderKind
from gemach.tools.availability import is_free_in
from gemach.tools.customer import upsert_customer_in
from gemach.tools.dates import parse_time
from gemach.tools.schedule import effective_slots_in, schedule_for_date
from gemach.utils import normalize_phone, phone_key, utc_now

logger = logging.getLogger(__name__)

_REMINDER_FLAGS: dict[ReminderKind, str] = {
    ReminderKind.CONFIRMATION: "confirmation_sent",
    ReminderKind.DAY_BEFORE: "day_before_reminder_sent",
    ReminderKind.RETURN: "return_reminder_sent",
}


def booking_id_for(phone: str, appointment_date: date, slot_time: str) -> str:
    """Deterministic id from customer and appointment instant, so re-creation is idempotent."""
    hours, minutes = parse_time(slot_time) or (0, 0)
    return f"{phone_key(phone)}_{appointment_date:%Y%m%d}{hours:02d}{minutes:02d}"


def _slot_minutes(slot_time: str) -> int:
    parsed = parse_time(slot_time)
    return parsed[0] * 60 + parsed[1] if parsed else 0


def _ensure_slot_open(
    session: Session, day: date, slot_time: str, exclude_booking_id: Optional[str] = None
) -> None:
    """Re-validate the slot inside the committing transaction."""
    if not is_free_in(session, day, slot_time, exclude_booking_id):
        raise SlotUnavailable(day, slot_time, "already booked or not a valid slot")
    effective = effective_slots_in(session, day)
    if slot_time not in effective.slots:
        raise SlotUnavailable(day, slot_time, effective.reason or "not offered on this date")


def _slot_duration_for(session: Session, day: date, slot_time: str, party_size: int) -> int:
    """Apply the party-size gate and return the slot length in minutes.

    Large groups need the last slot of the weekday's full configured list,
    even when an override has removed that slot for the date.
    """
    limits = settings.schedule
    if party_size > limits.max_party_size or party_size < 1:
        raise PartySizeExceeded(party_size, limits.max_party_size)
    if party_size <= limits.standard_party_size:
        return limits.short_slot_minutes

    schedule = schedule_for_date(session, day)
    last_slot = schedule.last_slot if schedule is not None else None
    if slot_time != last_slot:
        raise PartySizeRequiresLastSlot(party_size, last_slot)
    return limits.long_slot_minutes


def _get_row(session: Session, booking_id: str) -> BookingRow:
    row = session.get(BookingRow, booking_id)
    if row is None:
        raise NotFound(f"Booking {booking_id} not found")
    return row


def create_booking(
    store: Store,
    name: str,
    phone: str,
    appointment_date: date,
    slot_time: str,
    party_size: int,
    wedding_date: date,
) -> Booking:
    """Commit a confirmed booking.

    Raises:
        SlotUnavailable: The slot is taken, blocked, or not a valid slot.
        PartySizeRequiresLastSlot: A large group asked for a non-last slot.
        PartySizeExceeded: The group is larger than the maximum.
    """

    def work(session: Session) -> Booking:
        customer = upsert_customer_in(session, phone, name)
        booking_id = booking_id_for(phone, appointment_date, slot_time)
        existing = session.get(BookingRow, booking_id)
        if existing is not None and existing.status != BookingStatus.CANCELLED.value:
            logger.info("Booking %s already exists; returning it unchanged", booking_id)
            return Booking.model_validate(existing)

        _ensure_slot_open(session, appointment_date, slot_time)
        duration = _slot_duration_for(session, appointment_date, slot_time, party_size)

        now = utc_now()
        row = existing if existing is not None else BookingRow(id=booking_id, created_at=now)
        row.customer_id = customer.id
        row.customer_name = name
        row.customer_phone = normalize_phone(phone)
        row.appointment_date = appointment_date
        row.slot_time = slot_time
        row.slot_duration = duration
        row.party_size = party_size
        row.wedding_date = wedding_date
        row.status = BookingStatus.CONFIRMED.value
        row.item_picked_up = False
        row.item_picked_up_at = None
        row.item_returned = False
        row.item_returned_at = None
        row.payment_received = False
        row.confirmation_sent = False
        row.day_before_reminder_sent = False
        row.return_reminder_sent = False
        row.updated_at = now
        if existing is None:
            session.add(row)
        session.flush()
        return Booking.model_validate(row)

    try:
        booking = store.run_with_retry(work)
    except IntegrityError:
        logger.info("Lost booking race for %s %s", appointment_date, slot_time)
        raise SlotUnavailable(appointment_date, slot_time, "just booked by someone else") from None

    logger.info(
        "Booking created: %s for %s on %s at %s (party of %d)",
        booking.id, booking.customer_name, booking.appointment_date, booking.slot_time,
        booking.party_size,
    )
    return booking


def cancel_booking(store: Store, booking_id: str) -> Booking:
    """Cancel a booking. Always permitted; frees the slot for future checks."""
    with store.transaction() as session:
        row = _get_row(session, booking_id)
        row.status = BookingStatus.CANCELLED.value
        row.updated_at = utc_now()
        session.flush()
        booking = Booking.model_validate(row)
    logger.info("Booking cancelled: %s", booking_id)
    return booking


def reschedule_booking(
    store: Store, booking_id: str, new_date: date, new_slot_time: str
) -> Booking:
    """Move a booking to a new slot. On failure the original booking is untouched."""

    def work(session: Session) -> Booking:
        row = _get_row(session, booking_id)
        if row.status == BookingStatus.CANCELLED.value:
            raise NotFound(f"Booking {booking_id} is cancelled")
        _ensure_slot_open(session, new_date, new_slot_time, exclude_booking_id=row.id)
        row.slot_duration = _slot_duration_for(session, new_date, new_slot_time, row.party_size)
        row.appointment_date = new_date
        row.slot_time = new_slot_time
        row.day_before_reminder_sent = False
        row.updated_at = utc_now()
        session.flush()
        return Booking.model_validate(row)

    try:
        booking = store.run_with_retry(work)
    except IntegrityError:
        logger.info("Lost reschedule race for %s %s", new_date, new_slot_time)
        raise SlotUnavailable(new_date, new_slot_time, "just booked by someone else") from None

    logger.info("Booking rescheduled: %s to %s %s", booking_id, new_date, new_slot_time)
    return booking


def update_booking(store: Store, booking_id: str, patch: BookingUpdate) -> Booking:
    """Apply an administrative field patch without re-checking the schedule."""
    changes = patch.model_dump(exclude_unset=True)
    held: tuple[Optional[date], str] = (None, "")
    try:
        with store.transaction() as session:
            row = _get_row(session, booking_id)
            held = (row.appointment_date, row.slot_time)
            now = utc_now()
            for field_name, value in changes.items():
                if field_name == "status" and value is not None:
                    value = BookingStatus(value).value
                elif field_name == "customer_phone" and value:
                    value = normalize_phone(value)
                elif field_name == "item_picked_up" and value is not None and value != row.item_picked_up:
                    row.item_picked_up_at = now if value else None
                elif field_name == "item_returned" and value is not None and value != row.item_returned:
                    row.item_returned_at = now if value else None
                setattr(row, field_name, value)
            row.updated_at = now
            session.flush()
            booking = Booking.model_validate(row)
    except IntegrityError:
        # Re-activating a cancelled booking whose slot has since been taken
        raise SlotUnavailable(held[0], held[1], "held by another booking") from None

    logger.info("Booking updated: %s fields=%s", booking_id, sorted(changes))
    return booking


def mark_reminder_sent(store: Store, booking_id: str, kind: ReminderKind) -> Booking:
    """Set the idempotency flag for ``kind``. Safe to call repeatedly."""
    with store.transaction() as session:
        row = _get_row(session, booking_id)
        setattr(row, _REMINDER_FLAGS[kind], True)
        row.updated_at = utc_now()
        session.flush()
        booking = Booking.model_validate(row)
    logger.debug("Reminder %s marked sent for %s", kind.value, booking_id)
    return booking


# --------------------------------------------------------------------- #
# Queries
# --------------------------------------------------------------------- #

def _sorted(rows) -> list[Booking]:  # type: ignore[no-untyped-def]
    bookings = [Booking.model_validate(row) for row in rows]
    return sorted(bookings, key=lambda b: (b.appointment_date, _slot_minutes(b.slot_time)))


def get_booking(store: Store, booking_id: str) -> Optional[Booking]:
    """Retrieve a booking by id."""
    with store.transaction() as session:
        row = session.get(BookingRow, booking_id)
        return Booking.model_validate(row) if row is not None else None


def bookings_for_date(store: Store, day: date) -> list[Booking]:
    return bookings_in_range(store, day, day)


def bookings_in_range(store: Store, start: date, end: date) -> list[Booking]:
    """Non-cancelled bookings from ``start`` to ``end`` inclusive, earliest first."""
    query = select(BookingRow).where(
        BookingRow.appointment_date >= start,
        BookingRow.appointment_date <= end,
        BookingRow.status != BookingStatus.CANCELLED.value,
    )
    with store.transaction() as session:
        return _sorted(session.scalars(query))


def bookings_needing_day_before_reminder(store: Store, appointment_day: date) -> list[Booking]:
    query = select(BookingRow).where(
        BookingRow.appointment_date == appointment_day,
        BookingRow.status == BookingStatus.CONFIRMED.value,
        BookingRow.day_before_reminder_sent.is_(False),
    )
    with store.transaction() as session:
        return _sorted(session.scalars(query))


def bookings_needing_return_reminder(store: Store, wedding_day: date) -> list[Booking]:
    query = select(BookingRow).where(
        BookingRow.wedding_date == wedding_day,
        BookingRow.item_returned.is_(False),
        BookingRow.return_reminder_sent.is_(False),
        BookingRow.status != BookingStatus.CANCELLED.value,
    )
    with store.transaction() as session:
        return _sorted(session.scalars(query))


def active_booking_for_phone(store: Store, phone: str) -> Optional[Booking]:
    """The latest confirmed booking for a phone number, if any."""
    query = (
        select(BookingRow)
        .where(
            BookingRow.customer_id == phone_key(phone),
            BookingRow.status == BookingStatus.CONFIRMED.value,
        )
        .order_by(BookingRow.appointment_date.desc())
        .limit(1)
    )
    with store.transaction() as session:
        row = session.scalars(query).first()
        return Booking.model_validate(row) if row is not None else None


def list_bookings(
    store: Store,
    status: Optional[BookingStatus] = None,
    outstanding_items: bool = False,
    unpaid: bool = False,
    limit: Optional[int] = None,
) -> list[Booking]:
    """Admin listing, latest appointment first."""
    query = select(BookingRow).order_by(BookingRow.appointment_date.desc())
    if status is not None:
        query = query.where(BookingRow.status == BookingStatus(status).value)
    if outstanding_items:
        query = query.where(
            BookingRow.item_picked_up.is_(True), BookingRow.item_returned.is_(False)
        )
    if unpaid:
        query = query.where(BookingRow.payment_received.is_(False))
    if limit:
        query = query.limit(limit)
    with store.transaction() as session:
        return [Booking.model_validate(row) for row in session.scalars(query)]
