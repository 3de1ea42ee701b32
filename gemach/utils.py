"""Shared utilities used across the booking service."""

import re
from datetime import datetime, timezone


def phone_digits(value: str) -> str:
    """Strip everything but digits. Used as the customer and session key."""
    return re.sub(r"\D", "", value)


def normalize_phone(value: str) -> str:
    """Normalize a phone number to E.164, assuming US numbers.

    Examples:
        >>> normalize_phone("555-123-4567")
        '+15551234567'
        >>> normalize_phone("1 (555) 123-4567")
        '+15551234567'
        >>> normalize_phone("+44 20 7946 0958")
        '+442079460958'
    """
    value = value.strip()
    digits = phone_digits(value)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return f"+{digits}" if digits else value


def format_phone_display(value: str) -> str:
    """Format the last ten digits as 555-123-4567, or return the input unchanged."""
    last10 = phone_digits(value)[-10:]
    if len(last10) == 10:
        return f"{last10[:3]}-{last10[3:6]}-{last10[6:]}"
    return value


def utc_now() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def phone_key(value: str) -> str:
    """Stable storage key for a phone number: digits of its normalized form."""
    return phone_digits(normalize_phone(value))
