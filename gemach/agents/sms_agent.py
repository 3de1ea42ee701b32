"""
SMS channel: one inbound text in, one reply string out.

The transport layer hands over the sender number and body; whatever this
returns is sent back to the customer. Every message is logged in both
directions and traced with its own message id.
"""

import uuid
from typing import Optional

from gemach.conversation.engine import ConversationEngine
from gemach.conversation.extraction import ExtractionOracle
from gemach.db.store import Store
from gemach.logging_context import get_message_logger, set_message_id
from gemach.prompts import templates
from gemach.schemas.booking_schema import ReminderKind
from gemach.tools.booking import mark_reminder_sent
from gemach.tools.message_log import log_message
from gemach.utils import normalize_phone

logger = get_message_logger(__name__)


class SmsAgent:
    """Routes inbound SMS through the conversation engine."""

    def __init__(
        self,
        store: Store,
        oracle: Optional[ExtractionOracle] = None,
        engine: Optional[ConversationEngine] = None,
    ) -> None:
        self.store = store
        self.engine = engine or ConversationEngine(store, oracle)

    def handle(self, from_number: str, body: str, message_id: Optional[str] = None) -> str:
        """Process one inbound SMS and return the reply text.

        Unexpected failures are logged with full detail and the customer
        gets a generic apology instead of an error.
        """
        set_message_id(message_id or f"sms-{uuid.uuid4().hex[:12]}")
        phone = normalize_phone(from_number)
        text = (body or "").strip()
        if not text:
            logger.info("Empty message from %s", phone)
            return templates.greeting()

        try:
            view = self.engine.ingest(phone, text)
            log_message(self.store, "inbound", phone, text,
                        parsed_intent=view.intent.value, external_id=message_id)
            if view.booking is not None:
                # The reply itself is the confirmation text
                mark_reminder_sent(self.store, view.booking.id, ReminderKind.CONFIRMATION)
            reply = view.reply
        except Exception:
            logger.exception("Failed to process SMS from %s", phone)
            log_message(self.store, "inbound", phone, text, external_id=message_id)
            reply = templates.generic_error()

        log_message(self.store, "outbound", phone, reply)
        return reply
