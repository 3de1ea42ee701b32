"""
Weekday schedule configuration and per-date overrides.

The weekday template starts from the canonical calendar and can be
edited by an administrator. Overrides block a whole date or specific
slots on it. Every mutation is a read-modify-write inside one
transaction; concurrent admin edits are last-writer-wins.
"""

import logging
from datetime import date
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from gemach.db.models import DateOverrideRow, DayScheduleRow
from gemach.db.store import Store
from gemach.errors import ConfigurationInvalid
from gemach.schemas.booking_schema import DateOverride, DaySchedule, EffectiveSlots, Weekday
from gemach.tools.calendar_rules import CANONICAL_SLOTS, weekday_for, within_window
from gemach.tools.dates import parse_time
from gemach.utils import utc_now

logger = logging.getLogger(__name__)


def _coerce_weekday(weekday: Union[Weekday, str]) -> Weekday:
    try:
        return Weekday(str(weekday.value if isinstance(weekday, Weekday) else weekday).lower())
    except ValueError:
        valid = ", ".join(w.value for w in Weekday)
        raise ConfigurationInvalid(f"Unknown weekday {weekday!r}. Valid: {valid}") from None


def _default_schedule(weekday: Weekday) -> DaySchedule:
    return DaySchedule(weekday=weekday, enabled=True, slots=list(CANONICAL_SLOTS[weekday]))


def _load_day_schedule(session: Session, weekday: Weekday) -> DaySchedule:
    row = session.get(DayScheduleRow, weekday.value)
    if row is None:
        return _default_schedule(weekday)
    return DaySchedule.model_validate(row)


def _load_override(session: Session, day: date) -> Optional[DateOverride]:
    row = session.get(DateOverrideRow, day.isoformat())
    return DateOverride.model_validate(row) if row is not None else None


def schedule_for_date(session: Session, day: date) -> Optional[DaySchedule]:
    """The configured template for ``day``'s weekday, or None on closed weekdays."""
    weekday = weekday_for(day)
    if weekday is None:
        return None
    return _load_day_schedule(session, weekday)


def effective_slots_in(session: Session, day: date) -> EffectiveSlots:
    """Effective slots for ``day`` using an already-open session."""
    schedule = schedule_for_date(session, day)
    if schedule is None or not schedule.enabled:
        return EffectiveSlots(slots=[], blocked=False)

    override = _load_override(session, day)
    if override is None:
        return EffectiveSlots(slots=list(schedule.slots), blocked=False)
    if override.whole_day:
        return EffectiveSlots(slots=[], blocked=True, reason=override.reason)

    blocked = set(override.blocked_slots)
    return EffectiveSlots(
        slots=[slot for slot in schedule.slots if slot not in blocked],
        blocked=False,
        reason=override.reason,
    )


def effective_slots(store: Store, day: date) -> EffectiveSlots:
    """Slots offered on ``day`` after the weekday template and any override."""
    with store.transaction() as session:
        return effective_slots_in(session, day)


def day_schedule_for(store: Store, day: date) -> Optional[DaySchedule]:
    with store.transaction() as session:
        return schedule_for_date(session, day)


def get_schedule_config(store: Store) -> dict[Weekday, DaySchedule]:
    """All weekday templates, defaults included."""
    with store.transaction() as session:
        return {weekday: _load_day_schedule(session, weekday) for weekday in Weekday}


def _validate_slot_list(weekday: Weekday, slots: list[str]) -> None:
    """Labels must be canonical for the weekday, unique and in order."""
    seen: set[str] = set()
    previous = -1
    for label in slots:
        parsed = parse_time(label) if label and label.strip() else None
        if parsed is None:
            raise ConfigurationInvalid(f"Slot label {label!r} is not a time")
        if label not in CANONICAL_SLOTS[weekday] or not within_window(weekday, label):
            allowed = ", ".join(CANONICAL_SLOTS[weekday])
            raise ConfigurationInvalid(
                f"Slot {label!r} is not offered on {weekday.value.capitalize()}. Allowed: {allowed}"
            )
        if label in seen:
            raise ConfigurationInvalid(f"Slot {label!r} is listed twice")
        minutes = parsed[0] * 60 + parsed[1]
        if minutes <= previous:
            raise ConfigurationInvalid(f"Slots must be in chronological order; {label!r} is out of order")
        seen.add(label)
        previous = minutes


def set_day_schedule(
    store: Store,
    weekday: Union[Weekday, str],
    enabled: bool,
    slots: Optional[Iterable[str]] = None,
) -> DaySchedule:
    """Replace a weekday template. ``slots=None`` keeps the current slot list."""
    weekday = _coerce_weekday(weekday)
    new_slots = list(slots) if slots is not None else None
    if new_slots is not None:
        _validate_slot_list(weekday, new_slots)

    with store.transaction() as session:
        row = session.get(DayScheduleRow, weekday.value)
        if row is None:
            row = DayScheduleRow(weekday=weekday.value, slots=list(CANONICAL_SLOTS[weekday]))
            session.add(row)
        row.enabled = enabled
        if new_slots is not None:
            row.slots = new_slots
        row.updated_at = utc_now()
        session.flush()
        schedule = DaySchedule.model_validate(row)

    logger.info(
        "Day schedule updated: %s enabled=%s slots=%s", weekday.value, enabled, schedule.slots
    )
    return schedule


def block_date(
    store: Store,
    day: date,
    reason: Optional[str] = None,
    slots: Optional[Iterable[str]] = None,
) -> DateOverride:
    """Block a whole date (no ``slots``) or only the given slots. Replaces any prior override."""
    blocked_slots = list(dict.fromkeys(slots or []))

    with store.transaction() as session:
        if blocked_slots:
            schedule = schedule_for_date(session, day)
            if schedule is None:
                raise ConfigurationInvalid(
                    f"{day.isoformat()} is not an appointment day; block the whole date instead"
                )
            unknown = [slot for slot in blocked_slots if slot not in schedule.slots]
            if unknown:
                raise ConfigurationInvalid(
                    f"Slots {unknown} are not offered on {schedule.weekday.value}"
                )

        row = DateOverrideRow(
            date_str=day.isoformat(),
            reason=reason,
            blocked_slots=blocked_slots,
            created_at=utc_now(),
        )
        row = session.merge(row)
        session.flush()
        override = DateOverride.model_validate(row)

    logger.info(
        "Date blocked: %s (%s) reason=%r",
        override.date_str,
        ", ".join(blocked_slots) if blocked_slots else "whole day",
        reason,
    )
    return override


def unblock_date(store: Store, day: date) -> bool:
    """Remove the override for ``day``. Returns False if there was none."""
    with store.transaction() as session:
        row = session.get(DateOverrideRow, day.isoformat())
        if row is None:
            return False
        session.delete(row)
    logger.info("Date unblocked: %s", day.isoformat())
    return True


def list_date_overrides(
    store: Store, from_date: Optional[date] = None, limit: Optional[int] = None
) -> list[DateOverride]:
    """Overrides ordered by date, optionally only from ``from_date`` onwards."""
    query = select(DateOverrideRow).order_by(DateOverrideRow.date_str)
    if from_date is not None:
        query = query.where(DateOverrideRow.date_str >= from_date.isoformat())
    if limit:
        query = query.limit(limit)
    with store.transaction() as session:
        return [DateOverride.model_validate(row) for row in session.scalars(query)]
