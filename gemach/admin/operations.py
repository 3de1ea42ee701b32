"""
Administrator operations as a closed set of typed commands.

Each command is a frozen dataclass carrying exactly the fields it needs.
``apply_admin_operation`` dispatches on the command type and rejects
anything outside the set. Cancel and reschedule also return the notice
text to send to the customer; delivery is left to the caller.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, TypedDict, Union

from gemach.db.store import Store
from gemach.prompts import templates
from gemach.schemas.booking_schema import (
    Booking,
    BookingUpdate,
    DateOverride,
    DaySchedule,
    Weekday,
)
from gemach.tools import booking as bookings
from gemach.tools import schedule
from gemach.tools.availability import free_slots_for
from gemach.tools.calendar_rules import weekday_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetDaySchedule:
    weekday: Weekday
    enabled: bool
    slots: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class BlockDate:
    day: date
    reason: Optional[str] = None
    slots: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnblockDate:
    day: date


@dataclass(frozen=True)
class CreateBooking:
    name: str
    phone: str
    appointment_date: date
    slot_time: str
    party_size: int
    wedding_date: date
    notes: Optional[str] = None


@dataclass(frozen=True)
class CancelBooking:
    booking_id: str


@dataclass(frozen=True)
class RescheduleBooking:
    booking_id: str
    new_date: date
    new_slot_time: str


@dataclass(frozen=True)
class UpdateBooking:
    booking_id: str
    patch: BookingUpdate


@dataclass(frozen=True)
class MarkPickedUp:
    booking_id: str
    item_description: Optional[str] = None


@dataclass(frozen=True)
class MarkReturned:
    booking_id: str


@dataclass(frozen=True)
class MarkPaid:
    booking_id: str
    donation_amount: Optional[float] = None


AdminOperation = Union[
    SetDaySchedule,
    BlockDate,
    UnblockDate,
    CreateBooking,
    CancelBooking,
    RescheduleBooking,
    UpdateBooking,
    MarkPickedUp,
    MarkReturned,
    MarkPaid,
]


@dataclass
class AdminResult:
    """Affected record plus the customer notice to send, if any."""
    record: Union[Booking, DaySchedule, DateOverride, None]
    notice: Optional[str] = None
    notify_phone: Optional[str] = None
    changed: bool = True


def _booking_result(booking: Booking, notice: Optional[str] = None) -> AdminResult:
    return AdminResult(
        record=booking,
        notice=notice,
        notify_phone=booking.customer_phone if notice else None,
    )


def apply_admin_operation(store: Store, op: AdminOperation) -> AdminResult:
    """Apply one administrator command.

    Raises:
        SchedulingError: Propagated from the booking engine or schedule layer.
        TypeError: If ``op`` is not one of the admin operation types.
    """
    logger.info("Admin operation: %s", op)

    if isinstance(op, SetDaySchedule):
        slots = list(op.slots) if op.slots is not None else None
        return AdminResult(record=schedule.set_day_schedule(store, op.weekday, op.enabled, slots))

    if isinstance(op, BlockDate):
        return AdminResult(record=schedule.block_date(store, op.day, op.reason, list(op.slots)))

    if isinstance(op, UnblockDate):
        removed = schedule.unblock_date(store, op.day)
        return AdminResult(record=None, changed=removed)

    if isinstance(op, CreateBooking):
        booking = bookings.create_booking(
            store,
            name=op.name,
            phone=op.phone,
            appointment_date=op.appointment_date,
            slot_time=op.slot_time,
            party_size=op.party_size,
            wedding_date=op.wedding_date,
        )
        if op.notes:
            booking = bookings.update_booking(store, booking.id, BookingUpdate(notes=op.notes))
        return _booking_result(booking)

    if isinstance(op, CancelBooking):
        booking = bookings.cancel_booking(store, op.booking_id)
        notice = templates.admin_cancelled(booking.customer_name, booking.appointment_date)
        return _booking_result(booking, notice)

    if isinstance(op, RescheduleBooking):
        booking = bookings.reschedule_booking(store, op.booking_id, op.new_date, op.new_slot_time)
        notice = templates.admin_rescheduled(
            booking.customer_name, booking.appointment_date, booking.slot_time
        )
        return _booking_result(booking, notice)

    if isinstance(op, UpdateBooking):
        return _booking_result(bookings.update_booking(store, op.booking_id, op.patch))

    if isinstance(op, MarkPickedUp):
        patch = BookingUpdate(item_picked_up=True)
        if op.item_description is not None:
            patch = BookingUpdate(item_picked_up=True, item_description=op.item_description)
        return _booking_result(bookings.update_booking(store, op.booking_id, patch))

    if isinstance(op, MarkReturned):
        return _booking_result(
            bookings.update_booking(store, op.booking_id, BookingUpdate(item_returned=True))
        )

    if isinstance(op, MarkPaid):
        patch = BookingUpdate(payment_received=True)
        if op.donation_amount is not None:
            patch = BookingUpdate(payment_received=True, donation_amount=op.donation_amount)
        return _booking_result(bookings.update_booking(store, op.booking_id, patch))

    raise TypeError(f"Unsupported admin operation: {type(op).__name__}")


class SlotsReport(TypedDict):
    """Admin view of one date's slots."""

    date: str
    day_name: Optional[str]
    enabled: bool
    all_slots: list[str]
    free_slots: list[str]
    blocked: bool
    reason: Optional[str]


def slots_report(store: Store, day: date) -> SlotsReport:
    """Configured slots, free slots, and the block state for ``day``."""
    weekday = weekday_for(day)
    config = schedule.day_schedule_for(store, day)
    effective = schedule.effective_slots(store, day)
    return {
        "date": day.isoformat(),
        "day_name": weekday.value.title() if weekday else None,
        "enabled": bool(config and config.enabled),
        "all_slots": list(config.slots) if config else [],
        "free_slots": free_slots_for(store, day),
        "blocked": effective.blocked,
        "reason": effective.reason,
    }


class ItemStats(TypedDict):
    total_taken_out: int
    currently_out: int


def item_stats(store: Store) -> ItemStats:
    """How many gowns have gone out, and how many are still out."""
    picked_up = [b for b in bookings.list_bookings(store) if b.item_picked_up]
    return {
        "total_taken_out": len(picked_up),
        "currently_out": sum(1 for b in picked_up if not b.item_returned),
    }
