"""
Canonical calendar rules: which weekdays take appointments and at what times.

Pure functions over dates and time labels. Administrator changes to the
weekly template live in ``tools.schedule``; this module is the fixed
ground truth those changes are checked against.
"""

from datetime import date
from typing import Optional

from gemach.schemas.booking_schema import Weekday
from gemach.tools.dates import parse_time

SLOT_STEP_MINUTES = 15

CANONICAL_SLOTS: dict[Weekday, tuple[str, ...]] = {
    Weekday.WEDNESDAY: ("11:30 AM", "11:45 AM", "12:00 PM", "12:15 PM"),
    Weekday.SATURDAY: (
        "7:30 PM", "7:45 PM", "8:00 PM", "8:15 PM",
        "8:30 PM", "8:45 PM", "9:00 PM", "9:15 PM",
    ),
}

# Inclusive (first, last) slot start in minutes after midnight
VALID_WINDOWS: dict[Weekday, tuple[int, int]] = {
    Weekday.WEDNESDAY: (11 * 60 + 30, 12 * 60 + 15),
    Weekday.SATURDAY: (19 * 60 + 30, 21 * 60 + 15),
}

_PYTHON_WEEKDAYS: dict[int, Weekday] = {
    2: Weekday.WEDNESDAY,
    5: Weekday.SATURDAY,
}


def weekday_for(day: date) -> Optional[Weekday]:
    """The schedulable weekday for ``day``, or None on non-appointment days."""
    return _PYTHON_WEEKDAYS.get(day.weekday())


def slots_for(day: date) -> list[str]:
    """Canonical slot labels for ``day`` in chronological order; empty if closed."""
    weekday = weekday_for(day)
    if weekday is None:
        return []
    return list(CANONICAL_SLOTS[weekday])


def within_window(weekday: Weekday, label: str) -> bool:
    """True if ``label`` starts inside the weekday's fixed window on a 15-minute step."""
    parsed = parse_time(label)
    if parsed is None:
        return False
    minutes = parsed[0] * 60 + parsed[1]
    first, last = VALID_WINDOWS[weekday]
    return first <= minutes <= last and (minutes - first) % SLOT_STEP_MINUTES == 0


def is_valid_slot(day: date, label: str) -> bool:
    """Both listed for the weekday and inside its fixed time window."""
    weekday = weekday_for(day)
    if weekday is None:
        return False
    return label in CANONICAL_SLOTS[weekday] and within_window(weekday, label)


def last_canonical_slot(day: date) -> Optional[str]:
    slots = slots_for(day)
    return slots[-1] if slots else None
