"""
Conversation engine: one inbound message in, one reply out.

Each message is an independent unit of work. The engine loads the
sender's session (expired sessions count as absent), interprets the text
through the extraction oracle, applies the intent, and persists the
result. Booking errors never abort the conversation; they become a
corrective reply and the session is kept so the customer can adjust.
"""

from datetime import date, datetime
from typing import Callable, Optional

from gemach.config import settings
from gemach.conversation.extraction import ExtractionOracle, extract_with_fallback
from gemach.conversation.sessions import delete_session, get_session, save_session
from gemach.conversation.state_machine import SessionStateMachine, SessionTrigger
from gemach.db.store import Store
from gemach.errors import (
    DateParseFailure,
    PartySizeExceeded,
    PartySizeRequiresLastSlot,
    SlotUnavailable,
)
from gemach.logging_context import get_message_logger
from gemach.prompts import templates
from gemach.schemas.booking_schema import Booking
from gemach.schemas.conversation_schema import (
    CollectedFields,
    ConversationSession,
    Extraction,
    Intent,
    SessionState,
    SessionView,
)
from gemach.tools.availability import DateAvailability, free_slots_for, get_available_dates
from gemach.tools.booking import create_booking
from gemach.tools.calendar_rules import slots_for
from gemach.tools.dates import format_date, match_slot_label, parse_date
from gemach.tools.faq import answer_question
from gemach.tools.schedule import day_schedule_for
from gemach.utils import normalize_phone, phone_key, utc_now

logger = get_message_logger(__name__)


def _view(
    reply: str,
    intent: Intent,
    session: Optional[ConversationSession],
    booking: Optional[Booking] = None,
) -> SessionView:
    return SessionView(
        reply=reply,
        intent=intent,
        state=session.state if session else None,
        collected=session.collected if session else None,
        missing_fields=session.missing_fields if session else [],
        booking=booking,
    )


class ConversationEngine:
    """Per-message conversation handling over an explicit store handle.

    Args:
        store: Database handle shared with the booking engine.
        oracle: Extraction oracle; None means keyword extraction only.
        clock: Returns naive UTC "now" for session timestamps.
        today: Returns the local reference date for natural-language dates.
    """

    def __init__(
        self,
        store: Store,
        oracle: Optional[ExtractionOracle] = None,
        clock: Optional[Callable[[], datetime]] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self._clock = clock or utc_now
        self._today = today or date.today

    def ingest(self, identity: str, raw_text: str, now: Optional[datetime] = None) -> SessionView:
        """Process one inbound message from ``identity`` and return the reply."""
        now = now or self._clock()
        session = get_session(self.store, identity, now)
        existing = session.collected if session else CollectedFields()
        extraction = extract_with_fallback(self.oracle, raw_text, existing)
        intent = extraction.intent
        logger.info(
            "Message from %s: intent=%s confidence=%.2f session=%s",
            phone_key(identity), intent.value, extraction.confidence,
            session.state.value if session else "none",
        )

        if intent == Intent.GREETING:
            return _view(templates.greeting(), intent, session)

        if intent == Intent.QUESTION:
            answer = answer_question(raw_text)
            if answer is None and extraction.question:
                answer = answer_question(extraction.question)
            return _view(answer or templates.unknown_question(), intent, session)

        if intent == Intent.CANCELLATION:
            return self._cancel(identity, session)

        if intent == Intent.CONFIRMATION:
            if session is None:
                return _view(templates.no_pending_request(), intent, None)
            if session.state != SessionState.CONFIRMING:
                return _view(templates.missing_info(session.missing_fields), intent, session)
            return self._confirm(identity, session, now)

        return self._merge(identity, session, extraction, now)

    # ------------------------------------------------------------------ #
    # Intent handlers
    # ------------------------------------------------------------------ #

    def _cancel(self, identity: str, session: Optional[ConversationSession]) -> SessionView:
        state = None
        if session is not None:
            state = SessionStateMachine(session.state).transition(SessionTrigger.CUSTOMER_CANCELLED)
        delete_session(self.store, identity)
        return SessionView(
            reply=templates.request_cancelled(), intent=Intent.CANCELLATION, state=state
        )

    def _merge(
        self,
        identity: str,
        session: Optional[ConversationSession],
        extraction: Extraction,
        now: datetime,
    ) -> SessionView:
        current = session.collected if session else CollectedFields()
        collected = current.merged_with(extraction.extracted)
        if collected.phone is None:
            # The sender's number stands in until the customer gives another
            collected = collected.model_copy(update={"phone": normalize_phone(identity)})
        missing = collected.missing_fields()

        machine = SessionStateMachine(session.state if session else SessionState.COLLECTING_INFO)
        trigger = SessionTrigger.FIELDS_MISSING if missing else SessionTrigger.ALL_FIELDS_COLLECTED
        state = machine.transition(trigger)
        saved = save_session(self.store, identity, state, collected, now)

        if state == SessionState.CONFIRMING:
            reply = templates.confirmation_request(collected)
        else:
            reply = templates.missing_info(missing)
        return _view(reply, extraction.intent, saved)

    def _confirm(self, identity: str, session: ConversationSession, now: datetime) -> SessionView:
        collected = session.collected
        today = self._today()
        try:
            appointment_day = parse_date(collected.appointment_date or "", today)
            wedding_day = parse_date(collected.wedding_date or "", today)
        except DateParseFailure as exc:
            logger.info("Date parse failed for %s: %s", session.id, exc)
            return self._rejected(identity, session, now, templates.date_not_understood())

        if appointment_day < today:
            alternatives = self._alternatives(today)
            reply = templates.slot_unavailable(format_date(appointment_day), alternatives)
            return self._rejected(identity, session, now, reply)

        slot = self._choose_slot(collected, appointment_day)
        if slot is None:
            alternatives = self._alternatives(appointment_day)
            reply = templates.slot_unavailable(format_date(appointment_day), alternatives)
            return self._rejected(identity, session, now, reply)

        try:
            booking = create_booking(
                self.store,
                name=collected.name or "",
                phone=collected.phone or identity,
                appointment_date=appointment_day,
                slot_time=slot,
                party_size=collected.party_size or 1,
                wedding_date=wedding_day,
            )
        except SlotUnavailable as exc:
            logger.info("Booking rejected for %s: %s", session.id, exc)
            alternatives = self._alternatives(appointment_day, exclude_slot=slot)
            reply = templates.slot_unavailable(f"{slot} on {format_date(appointment_day)}", alternatives)
            return self._rejected(identity, session, now, reply)
        except PartySizeRequiresLastSlot as exc:
            logger.info("Booking rejected for %s: %s", session.id, exc)
            reply = templates.party_size_needs_last_slot(exc.party_size, exc.required_slot)
            return self._rejected(identity, session, now, reply)
        except PartySizeExceeded as exc:
            logger.info("Booking rejected for %s: %s", session.id, exc)
            return self._rejected(identity, session, now, templates.party_size_too_large(exc.max_party_size))

        state = SessionStateMachine(session.state).transition(SessionTrigger.BOOKING_COMMITTED)
        delete_session(self.store, identity)
        return SessionView(
            reply=templates.booking_confirmed(booking),
            intent=Intent.CONFIRMATION,
            state=state,
            collected=collected,
            booking=booking,
        )

    def _rejected(
        self, identity: str, session: ConversationSession, now: datetime, reply: str
    ) -> SessionView:
        """Keep the session in ``confirming`` so the customer can revise and retry."""
        state = SessionStateMachine(session.state).transition(SessionTrigger.BOOKING_REJECTED)
        saved = save_session(self.store, identity, state, session.collected, now)
        return _view(reply, Intent.CONFIRMATION, saved)

    # ------------------------------------------------------------------ #
    # Slot selection
    # ------------------------------------------------------------------ #

    def _choose_slot(self, collected: CollectedFields, day: date) -> Optional[str]:
        """The requested slot, or the first free one (the last slot for large groups)."""
        if collected.slot_time:
            return match_slot_label(collected.slot_time, slots_for(day)) or collected.slot_time

        free = free_slots_for(self.store, day)
        if not free:
            return None
        if (collected.party_size or 1) > settings.schedule.standard_party_size:
            schedule = day_schedule_for(self.store, day)
            last_slot = schedule.last_slot if schedule is not None else None
            return last_slot if last_slot in free else None
        return free[0]

    def _alternatives(self, day: date, exclude_slot: Optional[str] = None) -> list[str]:
        """Other free slots on ``day``, then the next dates with room."""
        entries: list[DateAvailability] = []
        same_day = [slot for slot in free_slots_for(self.store, day) if slot != exclude_slot]
        if same_day:
            entries.append({"date": day.isoformat(), "day_name": format_date(day), "slots": same_day})
        remaining = settings.schedule.alternatives_offered - len(entries)
        if remaining > 0:
            entries.extend(get_available_dates(self.store, day, limit=remaining))
        return templates.format_alternatives(entries)
