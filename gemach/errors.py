"""Scheduling error taxonomy.

Every booking-engine failure is recoverable: callers catch these and turn
them into a corrective next step for the customer or the administrator.
"""

from datetime import date
from typing import Optional


class SchedulingError(Exception):
    """Base class for all recoverable scheduling failures."""


class SlotUnavailable(SchedulingError):
    """The slot was taken by another booking, blocked, or never valid."""

    def __init__(self, appointment_date: date, slot_time: str, reason: str = "") -> None:
        self.appointment_date = appointment_date
        self.slot_time = slot_time
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Slot {slot_time} on {appointment_date.isoformat()} is not available{detail}")


class PartySizeRequiresLastSlot(SchedulingError):
    """Groups larger than the standard size only fit in the last slot."""

    def __init__(self, party_size: int, required_slot: Optional[str]) -> None:
        self.party_size = party_size
        self.required_slot = required_slot
        super().__init__(
            f"Groups of {party_size} need the last slot of the day ({required_slot or 'none configured'})"
        )


class PartySizeExceeded(SchedulingError):
    """Party size is outside the bookable range."""

    def __init__(self, party_size: int, max_party_size: int) -> None:
        self.party_size = party_size
        self.max_party_size = max_party_size
        super().__init__(f"Party size must be between 1 and {max_party_size}, got {party_size}")


class DateParseFailure(SchedulingError):
    """Free text could not be resolved to a calendar date."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Could not understand the date {text!r}")


class NotFound(SchedulingError):
    """Unknown booking or session identifier."""


class ConfigurationInvalid(SchedulingError):
    """Malformed schedule configuration or override."""
