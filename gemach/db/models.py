"""SQLAlchemy table definitions.

The partial unique index on ``bookings`` is the one schema-level invariant:
at most one non-cancelled booking per (appointment_date, slot_time).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase

from gemach.utils import utc_now


class Base(DeclarativeBase):
    pass


class CustomerRow(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True)  # phone digits
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True)
    customer_id = Column(String, nullable=False, index=True)
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False, index=True)

    appointment_date = Column(Date, nullable=False, index=True)
    slot_time = Column(String, nullable=False)
    slot_duration = Column(Integer, nullable=False)
    party_size = Column(Integer, nullable=False)
    wedding_date = Column(Date, nullable=False, index=True)

    status = Column(String(20), nullable=False, default="confirmed")
    # status values: pending, confirmed, completed, cancelled, no-show

    item_picked_up = Column(Boolean, nullable=False, default=False)
    item_picked_up_at = Column(DateTime, nullable=True)
    item_returned = Column(Boolean, nullable=False, default=False)
    item_returned_at = Column(DateTime, nullable=True)
    item_description = Column(String, nullable=True)
    payment_received = Column(Boolean, nullable=False, default=False)
    donation_amount = Column(Float, nullable=True)

    confirmation_sent = Column(Boolean, nullable=False, default=False)
    day_before_reminder_sent = Column(Boolean, nullable=False, default=False)
    return_reminder_sent = Column(Boolean, nullable=False, default=False)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "appointment_date",
            "slot_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )


class ConversationSessionRow(Base):
    __tablename__ = "conversation_sessions"

    id = Column(String, primary_key=True)  # phone digits
    phone = Column(String, nullable=False)
    state = Column(String(20), nullable=False)
    collected = Column(JSON, nullable=False, default=dict)
    missing_fields = Column(JSON, nullable=False, default=list)
    last_message_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class DayScheduleRow(Base):
    __tablename__ = "day_schedules"

    weekday = Column(String(12), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    slots = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime, nullable=False, default=utc_now)


class DateOverrideRow(Base):
    __tablename__ = "date_overrides"

    date_str = Column(String(10), primary_key=True)  # YYYY-MM-DD
    reason = Column(String, nullable=True)
    blocked_slots = Column(JSON, nullable=False, default=list)  # empty = whole day
    created_at = Column(DateTime, nullable=False, default=utc_now)


class MessageLogRow(Base):
    __tablename__ = "message_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    direction = Column(String(8), nullable=False)  # inbound | outbound
    channel = Column(String(8), nullable=False, default="sms")
    phone = Column(String, nullable=False, index=True)
    message = Column(Text, nullable=False)
    parsed_intent = Column(String(20), nullable=True)
    external_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
