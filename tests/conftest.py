"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Any, Optional

import pytest

from gemach.conversation.engine import ConversationEngine
from gemach.conversation.state_machine import SessionStateMachine
from gemach.db.store import Store
from gemach.schemas.booking_schema import Booking
from gemach.schemas.conversation_schema import CollectedFields
from gemach.tools.booking import create_booking

# Monday; "this Wednesday" is 2024-03-06 and "next Wednesday" is 2024-03-13
TODAY = date(2024, 3, 4)
NOW = datetime(2024, 3, 4, 15, 0)
WEDNESDAY = date(2024, 3, 6)
SATURDAY = date(2024, 3, 9)
NEXT_WEDNESDAY = date(2024, 3, 13)
WEDDING = date(2024, 6, 10)

PHONE = "+15551234567"
OTHER_PHONE = "+13475550101"

FULL_REQUEST = "Sarah, this Wednesday, 2 people, wedding June 10, 555-123-4567"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'gemach-test.db'}"


@pytest.fixture
def store(db_url):
    store = Store.from_url(db_url)
    yield store
    store.dispose()


@pytest.fixture
def state_machine():
    return SessionStateMachine()


class ScriptedOracle:
    """Returns canned extractions for known messages.

    Unscripted messages get a zero-confidence answer, which sends them
    through the keyword fallback just like an unsure model would.
    """

    def __init__(self, script: Optional[dict[str, Any]] = None) -> None:
        self.script = dict(script or {})
        self.calls: list[tuple[str, CollectedFields]] = []

    def extract(self, text: str, existing: CollectedFields) -> Any:
        self.calls.append((text, existing))
        return self.script.get(text, {"intent": "unknown", "confidence": 0.0})


def booking_extraction(**fields: Any) -> dict[str, Any]:
    """Helper to build an oracle answer in the model's camelCase format."""
    return {"intent": "booking", "extractedData": fields, "confidence": 0.9}


@pytest.fixture
def oracle():
    return ScriptedOracle({
        FULL_REQUEST: booking_extraction(
            name="Sarah",
            appointmentDate="this Wednesday",
            groupSize=2,
            weddingDate="June 10",
            phone="555-123-4567",
        ),
    })


@pytest.fixture
def engine(store, oracle):
    return ConversationEngine(store, oracle, clock=lambda: NOW, today=lambda: TODAY)


def make_booking(
    store: Store,
    phone: str = PHONE,
    appointment_date: date = WEDNESDAY,
    slot_time: str = "11:30 AM",
    party_size: int = 2,
    name: str = "Sarah Cohen",
    wedding_date: date = WEDDING,
) -> Booking:
    """Helper to commit a booking with sensible defaults."""
    return create_booking(
        store,
        name=name,
        phone=phone,
        appointment_date=appointment_date,
        slot_time=slot_time,
        party_size=party_size,
        wedding_date=wedding_date,
    )
