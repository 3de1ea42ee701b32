"""Booking, customer and schedule data models."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class ReminderKind(str, Enum):
    """Outbound messages tracked with an idempotency flag on the booking."""
    CONFIRMATION = "confirmation"
    DAY_BEFORE = "day_before"
    RETURN = "return"


class Weekday(str, Enum):
    """Weekdays that carry a configurable schedule."""
    WEDNESDAY = "wednesday"
    SATURDAY = "saturday"


class Customer(BaseModel):
    """Customer record, keyed by phone digits."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    phone: str
    created_at: datetime
    updated_at: datetime


class Booking(BaseModel):
    """A committed appointment and its post-booking tracking flags."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    customer_name: str
    customer_phone: str

    appointment_date: date
    slot_time: str
    slot_duration: int
    party_size: int = Field(ge=1)
    wedding_date: date

    status: BookingStatus = BookingStatus.CONFIRMED

    item_picked_up: bool = False
    item_picked_up_at: Optional[datetime] = None
    item_returned: bool = False
    item_returned_at: Optional[datetime] = None
    item_description: Optional[str] = None
    payment_received: bool = False
    donation_amount: Optional[float] = None

    confirmation_sent: bool = False
    day_before_reminder_sent: bool = False
    return_reminder_sent: bool = False

    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingUpdate(BaseModel):
    """Administrative field patch. Only fields that are set get applied."""

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    party_size: Optional[int] = Field(default=None, ge=1)
    wedding_date: Optional[date] = None
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None
    item_picked_up: Optional[bool] = None
    item_returned: Optional[bool] = None
    item_description: Optional[str] = None
    payment_received: Optional[bool] = None
    donation_amount: Optional[float] = None


class DaySchedule(BaseModel):
    """Slot template for one recurring weekday. The last slot hosts large groups."""
    model_config = ConfigDict(from_attributes=True)

    weekday: Weekday
    enabled: bool = True
    slots: list[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    @property
    def last_slot(self) -> Optional[str]:
        return self.slots[-1] if self.slots else None


class DateOverride(BaseModel):
    """Date-specific exception. An empty ``blocked_slots`` blocks the whole day."""
    model_config = ConfigDict(from_attributes=True)

    date_str: str
    reason: Optional[str] = None
    blocked_slots: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def whole_day(self) -> bool:
        return not self.blocked_slots


class EffectiveSlots(BaseModel):
    """Slots offered on a date after weekday config and overrides are applied."""
    slots: list[str] = Field(default_factory=list)
    blocked: bool = False
    reason: Optional[str] = None
