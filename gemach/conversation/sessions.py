"""
Persisted conversation sessions, one per customer phone.

Expiry is evaluated lazily on read: a session past ``expires_at`` is
treated as absent and removed. ``purge_expired_sessions`` is optional
storage hygiene and changes nothing observable.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete

from gemach.config import settings
from gemach.db.models import ConversationSessionRow
from gemach.db.store import Store
from gemach.schemas.conversation_schema import (
    CollectedFields,
    ConversationSession,
    SessionState,
)
from gemach.utils import normalize_phone, phone_key

logger = logging.getLogger(__name__)


def expiry_for(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.schedule.session_idle_minutes)


def _to_session(row: ConversationSessionRow) -> ConversationSession:
    return ConversationSession(
        id=row.id,
        phone=row.phone,
        state=SessionState(row.state),
        collected=CollectedFields.model_validate(row.collected or {}),
        missing_fields=list(row.missing_fields or []),
        last_message_at=row.last_message_at,
        expires_at=row.expires_at,
    )


def get_session(store: Store, identity: str, now: datetime) -> Optional[ConversationSession]:
    """The live session for ``identity``, or None if absent or expired."""
    with store.transaction() as session:
        row = session.get(ConversationSessionRow, phone_key(identity))
        if row is None:
            return None
        if now > row.expires_at:
            logger.info("Session for %s expired at %s; starting fresh", row.id, row.expires_at)
            session.delete(row)
            return None
        return _to_session(row)


def save_session(
    store: Store,
    identity: str,
    state: SessionState,
    collected: CollectedFields,
    now: datetime,
) -> ConversationSession:
    """Upsert the session and refresh its expiry to ``now`` plus the idle window."""
    row = ConversationSessionRow(
        id=phone_key(identity),
        phone=normalize_phone(identity),
        state=state.value,
        collected=collected.model_dump(),
        missing_fields=collected.missing_fields(),
        last_message_at=now,
        expires_at=expiry_for(now),
    )
    with store.transaction() as session:
        row = session.merge(row)
        session.flush()
        return _to_session(row)


def delete_session(store: Store, identity: str) -> bool:
    with store.transaction() as session:
        row = session.get(ConversationSessionRow, phone_key(identity))
        if row is None:
            return False
        session.delete(row)
    logger.debug("Session deleted for %s", phone_key(identity))
    return True


def purge_expired_sessions(store: Store, now: datetime) -> int:
    with store.transaction() as session:
        result = session.execute(
            delete(ConversationSessionRow).where(ConversationSessionRow.expires_at < now)
        )
        count = result.rowcount or 0
    if count:
        logger.info("Purged %d expired sessions", count)
    return count
