"""Correlation ID logging context for tracing one inbound message.

Every SMS or voice tool call is an independent unit of work. The channel
sets a message ID at the start, and every log line written while that
message is processed carries it.

Usage:
    from gemach.logging_context import get_message_logger, set_message_id

    set_message_id("SM-abc123")
    logger = get_message_logger(__name__)
    logger.info("Processing message")  # record.message_id == "SM-abc123"
"""

import logging
from contextvars import ContextVar

_message_id: ContextVar[str] = ContextVar("message_id", default="NO_MESSAGE_ID")


def set_message_id(message_id: str) -> None:
    """Set the correlation ID for the current context."""
    _message_id.set(message_id)


def get_message_id() -> str:
    """Retrieve the current correlation ID."""
    return _message_id.get()


class MessageIdFilter(logging.Filter):
    """Injects message_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.message_id = _message_id.get()  # type: ignore[attr-defined]
        return True


def get_message_logger(name: str) -> logging.Logger:
    """Return a logger with the MessageIdFilter attached.

    The filter adds ``message_id`` to each record so formatters can
    include ``%(message_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, MessageIdFilter) for f in logger.filters):
        logger.addFilter(MessageIdFilter())
    return logger
