"""
Reminder pass and weekly summary for the manager.

The dispatcher is driven by an external periodic trigger. A reminder is
marked sent only after delivery succeeds, so a failed send is retried on
the next pass and a successful one is never repeated.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Optional

from gemach.db.store import Store
from gemach.prompts import templates
from gemach.schemas.booking_schema import Booking, ReminderKind
from gemach.tools.booking import (
    bookings_for_date,
    bookings_in_range,
    bookings_needing_day_before_reminder,
    bookings_needing_return_reminder,
    mark_reminder_sent,
)
from gemach.tools.dates import week_range

logger = logging.getLogger(__name__)

# (phone, text) -> None; raises on delivery failure
SendFn = Callable[[str, str], None]


@dataclass
class ReminderFailure:
    booking_id: str
    kind: ReminderKind
    error: str


@dataclass
class ReminderReport:
    """Outcome of one reminder pass."""
    day_before_sent: list[str] = field(default_factory=list)
    return_sent: list[str] = field(default_factory=list)
    failures: list[ReminderFailure] = field(default_factory=list)

    @property
    def total_sent(self) -> int:
        return len(self.day_before_sent) + len(self.return_sent)


def _dispatch(
    store: Store,
    send: SendFn,
    bookings: list[Booking],
    kind: ReminderKind,
    render: Callable[[Booking], str],
    sent: list[str],
    report: ReminderReport,
) -> None:
    for booking in bookings:
        try:
            send(booking.customer_phone, render(booking))
        except Exception as exc:
            logger.warning("Failed to send %s reminder for %s: %s", kind.value, booking.id, exc)
            report.failures.append(ReminderFailure(booking.id, kind, str(exc)))
            continue
        mark_reminder_sent(store, booking.id, kind)
        sent.append(booking.id)


def send_due_reminders(store: Store, send: SendFn, today: Optional[date] = None) -> ReminderReport:
    """Send day-before reminders for tomorrow and return reminders for yesterday's weddings.

    Return reminders only go to customers who picked up an item.
    """
    today = today or date.today()
    report = ReminderReport()

    _dispatch(
        store, send,
        bookings_needing_day_before_reminder(store, today + timedelta(days=1)),
        ReminderKind.DAY_BEFORE, templates.day_before_reminder,
        report.day_before_sent, report,
    )
    _dispatch(
        store, send,
        [
            booking for booking in bookings_needing_return_reminder(store, today - timedelta(days=1))
            if booking.item_picked_up
        ],
        ReminderKind.RETURN, templates.return_reminder,
        report.return_sent, report,
    )

    logger.info(
        "Reminder pass for %s: %d day-before, %d return, %d failed",
        today, len(report.day_before_sent), len(report.return_sent), len(report.failures),
    )
    return report


def weekly_summary(store: Store, today: Optional[date] = None) -> str:
    """This week's appointments (Sunday to Saturday) rendered for the manager."""
    start, end = week_range(today)
    return templates.weekly_summary(bookings_in_range(store, start, end))


# weekday() -> (days ahead, label) for the manager's appointment notice
MANAGER_NOTICE_DAYS: dict[int, tuple[int, str]] = {
    1: (1, "Tomorrow (Wednesday)"),
    2: (0, "Today (Wednesday)"),
    4: (1, "Tomorrow (Motzei Shabbos)"),
}


def manager_daily_notice(store: Store, today: Optional[date] = None) -> Optional[str]:
    """The manager's appointment list for the next appointment day.

    Tuesday and Wednesday cover Wednesday; Friday covers Motzei Shabbos.
    Returns None on other days and when nothing is booked.
    """
    today = today or date.today()
    notice_day = MANAGER_NOTICE_DAYS.get(today.weekday())
    if notice_day is None:
        return None
    days_ahead, label = notice_day
    bookings = bookings_for_date(store, today + timedelta(days=days_ahead))
    logger.info("Manager notice for %s: %d appointments", label, len(bookings))
    if not bookings:
        return None
    return templates.manager_daily_notice(label, bookings)
