"""
Natural-language date and time handling for appointment scheduling.

Customers write dates the way they speak ("this Wednesday",
"next Motzei Shabbos", "June 10"). Everything here resolves against an
explicit reference date so results are reproducible in tests.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from dateutil import parser as date_parser

from gemach.errors import DateParseFailure

logger = logging.getLogger(__name__)

WEEKDAY_INDEX: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

# Saturday night after the Sabbath
WEEKDAY_SYNONYMS: dict[str, int] = {
    "motzei shabbos": 5,
    "motzaei shabbos": 5,
    "motzei shabbat": 5,
    "motzaei shabbat": 5,
    "shabbos": 5,
    "shabbat": 5,
}

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

# Wednesday and Saturday
APPOINTMENT_WEEKDAYS = (2, 5)

# A bare "Month Day" further out than this is assumed to mean the past occurrence
MAX_MONTHS_AHEAD = 8

_WEEKDAY_PATTERN = re.compile(
    r"\b(?:(this|next)\s+)?("
    + "|".join(sorted(list(WEEKDAY_SYNONYMS) + list(WEEKDAY_INDEX), key=len, reverse=True))
    + r")\b"
)
_MONTH_DAY_PATTERN = re.compile(r"\b([a-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b")
_EXPLICIT_DATE_PATTERN = re.compile(r"\d{4}|\d{1,2}/\d{1,2}")
_TIME_PATTERN = re.compile(r"(\d{1,2})(?::?(\d{2}))?\s*([ap])\.?\s*m?\.?", re.IGNORECASE)
_BARE_TIME_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?")


def parse_date(text: str, reference: Optional[date] = None) -> date:
    """Resolve free text to a calendar date.

    Raises:
        DateParseFailure: If nothing in the text can be read as a date.
    """
    today = reference or date.today()
    lower = text.lower().strip().strip(".!,")

    if lower == "today":
        return today
    if lower == "tomorrow":
        return today + timedelta(days=1)

    if _EXPLICIT_DATE_PATTERN.search(lower):
        return _parse_explicit(text, today)

    month_day = _parse_month_day(lower, today)
    if month_day is not None:
        return month_day

    weekday = _parse_weekday(lower, today)
    if weekday is not None:
        return weekday

    logger.debug("Unparseable date text: %r", text)
    raise DateParseFailure(text)


def _parse_explicit(text: str, today: date) -> date:
    # Noon default keeps timezone shifts from moving the day
    default = datetime(today.year, today.month, today.day, 12, 0)
    try:
        return date_parser.parse(text, default=default, fuzzy=True).date()
    except (ValueError, OverflowError) as exc:
        raise DateParseFailure(text) from exc


def _month_index(word: str) -> Optional[int]:
    if len(word) < 3:
        return None
    for index, month in enumerate(MONTHS):
        if month.startswith(word):
            return index + 1
    return None


def _parse_month_day(lower: str, today: date) -> Optional[date]:
    for match in _MONTH_DAY_PATTERN.finditer(lower):
        month = _month_index(match.group(1))
        if month is None:
            continue
        day = int(match.group(2))
        result = _safe_date(today.year, month, day)
        if result is None:
            raise DateParseFailure(match.group(0))
        if result < today:
            result = _safe_date(today.year + 1, month, day) or result
        if (result - today).days / 30 > MAX_MONTHS_AHEAD:
            earlier = _safe_date(result.year - 1, month, day)
            if earlier is not None and earlier >= today:
                result = earlier
        return result
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_weekday(lower: str, today: date) -> Optional[date]:
    match = _WEEKDAY_PATTERN.search(lower)
    if not match:
        return None
    qualifier, name = match.group(1), match.group(2)
    target = WEEKDAY_SYNONYMS.get(name, WEEKDAY_INDEX.get(name))
    if target is None:
        return None

    days_ahead = target - today.weekday()
    # "next" always skips a week; a bare day that is today or already past rolls forward
    if qualifier == "next" or days_ahead <= 0:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def parse_time(text: str) -> Optional[tuple[int, int]]:
    """Parse "7:30 PM", "11:30am", "9pm" or "12:15" into 24h (hours, minutes)."""
    text = text.strip()
    match = _TIME_PATTERN.search(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        period = match.group(3).lower()
        if hours > 12 or minutes > 59:
            return None
        if period == "p" and hours != 12:
            hours += 12
        elif period == "a" and hours == 12:
            hours = 0
        return hours, minutes

    match = _BARE_TIME_PATTERN.search(text)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2) or 0)
    if hours > 23 or minutes > 59:
        return None
    return hours, minutes


def match_slot_label(text: str, labels: Iterable[str]) -> Optional[str]:
    """Map free text like "7:30" or "8pm" to one of the canonical slot labels.

    A time without am/pm also matches the afternoon/evening reading.
    """
    wanted = parse_time(text)
    if wanted is None:
        return None
    has_period = _TIME_PATTERN.search(text) is not None
    candidates = {wanted}
    if not has_period and wanted[0] < 12:
        candidates.add((wanted[0] + 12, wanted[1]))
    for label in labels:
        if parse_time(label) in candidates:
            return label
    return None


def format_date(value: date) -> str:
    """Long display form, e.g. "Wednesday, March 13"."""
    return f"{value:%A}, {value:%B} {value.day}"


def format_date_short(value: date) -> str:
    """Short display form for lists, e.g. "Wed, Mar 13"."""
    return f"{value:%a}, {value:%b} {value.day}"


def next_appointment_dates(reference: Optional[date] = None, count: int = 4) -> list[date]:
    """The next ``count`` Wednesdays and Saturdays strictly after ``reference``."""
    current = reference or date.today()
    dates: list[date] = []
    while len(dates) < count:
        current += timedelta(days=1)
        if current.weekday() in APPOINTMENT_WEEKDAYS:
            dates.append(current)
    return dates


def week_range(reference: Optional[date] = None) -> tuple[date, date]:
    """Sunday through Saturday of the week containing ``reference``."""
    reference = reference or date.today()
    start = reference - timedelta(days=(reference.weekday() + 1) % 7)
    return start, start + timedelta(days=6)
