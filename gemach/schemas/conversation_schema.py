"""Conversation session schemas shared by the SMS and voice channels."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from gemach.schemas.booking_schema import Booking


class Intent(str, Enum):
    GREETING = "greeting"
    QUESTION = "question"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    BOOKING = "booking"
    UNKNOWN = "unknown"


class SessionState(str, Enum):
    COLLECTING_INFO = "collecting_info"
    CONFIRMING = "confirming"
    BOOKED = "booked"
    CANCELLED = "cancelled"


# Required for a complete booking request. The slot time is optional and
# defaults to the first free slot.
REQUIRED_FIELDS: tuple[str, ...] = (
    "name",
    "appointment_date",
    "party_size",
    "wedding_date",
    "phone",
)


class CollectedFields(BaseModel):
    """Partial booking request accumulated across messages.

    Accepts both snake_case and the camelCase keys an LLM tends to emit.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    appointment_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("appointment_date", "appointmentDate")
    )
    slot_time: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("slot_time", "slotTime")
    )
    party_size: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("party_size", "groupSize", "group_size")
    )
    wedding_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("wedding_date", "weddingDate")
    )
    phone: Optional[str] = None

    @field_validator("name", "appointment_date", "slot_time", "wedding_date", "phone", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("party_size", mode="before")
    @classmethod
    def _coerce_party_size(cls, value: Any) -> Any:
        if value is None or isinstance(value, int):
            return value
        match = re.search(r"\d+", str(value))
        return int(match.group()) if match else None

    def merged_with(self, incoming: "CollectedFields") -> "CollectedFields":
        """Keep each existing value unless ``incoming`` carries a non-empty one."""
        merged = self.model_dump()
        for key, value in incoming.model_dump().items():
            if value is not None:
                merged[key] = value
        return CollectedFields(**merged)

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if getattr(self, name) is None]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class Extraction(BaseModel):
    """Structured interpretation of one inbound message."""

    intent: Intent = Intent.UNKNOWN
    extracted: CollectedFields = Field(
        default_factory=CollectedFields,
        validation_alias=AliasChoices("extracted", "extractedData", "extracted_fields"),
    )
    question: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("intent", mode="before")
    @classmethod
    def _unknown_intent(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() not in {i.value for i in Intent}:
            return Intent.UNKNOWN
        return value.lower() if isinstance(value, str) else value

    @field_validator("extracted", mode="before")
    @classmethod
    def _none_extracted(cls, value: Any) -> Any:
        return {} if value is None else value


class ConversationSession(BaseModel):
    """Persisted per-phone conversation state."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    phone: str
    state: SessionState = SessionState.COLLECTING_INFO
    collected: CollectedFields = Field(default_factory=CollectedFields)
    missing_fields: list[str] = Field(default_factory=lambda: list(REQUIRED_FIELDS))
    last_message_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SessionView(BaseModel):
    """Outcome of ingesting one message: the reply plus the session after it."""

    reply: str
    intent: Intent
    state: Optional[SessionState] = None
    collected: Optional[CollectedFields] = None
    missing_fields: list[str] = Field(default_factory=list)
    booking: Optional[Booking] = None
