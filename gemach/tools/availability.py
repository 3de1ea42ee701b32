"""
Slot ledger: which slots on a date are still free.

A slot is free when it is a valid calendar slot and no non-cancelled
booking holds it. What callers see as availability is the effective
schedule for the date minus the slots already booked.
"""

import logging
from datetime import date
from typing import Optional, TypedDict

from sqlalchemy import select
from sqlalchemy.orm import Session

from gemach.config import settings
from gemach.db.models import BookingRow
from gemach.db.store import Store
from gemach.schemas.booking_schema import BookingStatus
from gemach.tools.calendar_rules import is_valid_slot
from gemach.tools.dates import format_date, next_appointment_dates
from gemach.tools.schedule import effective_slots_in

logger = logging.getLogger(__name__)

# How far ahead to look when offering alternative dates
SEARCH_HORIZON_DATES = 16


class AvailabilityResult(TypedDict):
    """Result from check_availability."""

    date: str
    available: bool
    slots: list[str]
    blocked: bool
    reason: Optional[str]
    message: str


class DateAvailability(TypedDict):
    """Summary of availability for a single date."""

    date: str
    day_name: str
    slots: list[str]


def booked_slots_in(
    session: Session, day: date, exclude_booking_id: Optional[str] = None
) -> set[str]:
    """Slot labels held by non-cancelled bookings on ``day``."""
    query = select(BookingRow.slot_time).where(
        BookingRow.appointment_date == day,
        BookingRow.status != BookingStatus.CANCELLED.value,
    )
    if exclude_booking_id is not None:
        query = query.where(BookingRow.id != exclude_booking_id)
    return set(session.scalars(query))


def is_free_in(
    session: Session, day: date, slot_time: str, exclude_booking_id: Optional[str] = None
) -> bool:
    """``is_free`` against an open session, optionally ignoring one booking's own hold."""
    if not is_valid_slot(day, slot_time):
        return False
    return slot_time not in booked_slots_in(session, day, exclude_booking_id)


def is_free(store: Store, day: date, slot_time: str) -> bool:
    with store.transaction() as session:
        return is_free_in(session, day, slot_time)


def free_slots_in(session: Session, day: date) -> list[str]:
    offered = effective_slots_in(session, day).slots
    taken = booked_slots_in(session, day)
    return [slot for slot in offered if slot not in taken and is_valid_slot(day, slot)]


def free_slots_for(store: Store, day: date) -> list[str]:
    """Effective slots for ``day`` not yet booked, in chronological order."""
    with store.transaction() as session:
        return free_slots_in(session, day)


def check_availability(store: Store, day: date) -> AvailabilityResult:
    """Availability for one date with a customer-readable message."""
    with store.transaction() as session:
        effective = effective_slots_in(session, day)
        taken = booked_slots_in(session, day)
    free = [slot for slot in effective.slots if slot not in taken]
    label = format_date(day)

    if effective.blocked:
        reason = f" ({effective.reason})" if effective.reason else ""
        message = f"Sorry, we're closed on {label}{reason}."
    elif not effective.slots:
        message = f"We don't have appointments on {label}."
    elif not free:
        message = f"Sorry, {label} is fully booked."
    else:
        message = f"For {label}, these slots are open: {', '.join(free)}."

    return {
        "date": day.isoformat(),
        "available": bool(free),
        "slots": free,
        "blocked": effective.blocked,
        "reason": effective.reason,
        "message": message,
    }


def get_available_dates(
    store: Store, after: date, limit: Optional[int] = None
) -> list[DateAvailability]:
    """The next appointment dates after ``after`` that still have free slots."""
    limit = limit or settings.schedule.alternatives_offered
    results: list[DateAvailability] = []
    with store.transaction() as session:
        for day in next_appointment_dates(after, SEARCH_HORIZON_DATES):
            free = free_slots_in(session, day)
            if free:
                results.append(
                    {"date": day.isoformat(), "day_name": format_date(day), "slots": free}
                )
            if len(results) >= limit:
                break
    logger.debug("Alternative dates after %s: %s", after, [r["date"] for r in results])
    return results
