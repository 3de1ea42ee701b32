"""Append-only log of inbound and outbound customer messages."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from gemach.db.models import MessageLogRow
from gemach.db.store import Store
from gemach.utils import normalize_phone, utc_now

logger = logging.getLogger(__name__)


def log_message(
    store: Store,
    direction: str,
    phone: str,
    message: str,
    channel: str = "sms",
    parsed_intent: Optional[str] = None,
    external_id: Optional[str] = None,
) -> None:
    """Record one message. A logging failure never interrupts the conversation."""
    try:
        with store.transaction() as session:
            session.add(MessageLogRow(
                direction=direction,
                channel=channel,
                phone=normalize_phone(phone),
                message=message,
                parsed_intent=parsed_intent,
                external_id=external_id,
                created_at=utc_now(),
            ))
    except SQLAlchemyError:
        logger.exception("Failed to log %s message for %s", direction, phone)


def recent_messages(store: Store, phone: str, limit: int = 20) -> list[dict]:
    """Most recent messages for a phone, oldest first."""
    query = (
        select(MessageLogRow)
        .where(MessageLogRow.phone == normalize_phone(phone))
        .order_by(MessageLogRow.id.desc())
        .limit(limit)
    )
    with store.transaction() as session:
        rows = list(session.scalars(query))
    return [
        {
            "direction": row.direction,
            "channel": row.channel,
            "message": row.message,
            "parsed_intent": row.parsed_intent,
            "created_at": row.created_at,
        }
        for row in reversed(rows)
    ]
