"""
Finite state machine for a customer's booking session.

A session collects fields until the request is complete, then waits for
an explicit confirmation. Booking commit and customer cancellation are
terminal; the session row is deleted when either happens.

Usage:
    sm = SessionStateMachine()
    sm.transition(SessionTrigger.ALL_FIELDS_COLLECTED)
    assert sm.current_state == SessionState.CONFIRMING
"""

import logging
from dataclasses import dataclass
from enum import Enum

from gemach.schemas.conversation_schema import SessionState

logger = logging.getLogger(__name__)


class SessionTrigger(str, Enum):
    """Events that move a session between states."""
    FIELDS_MISSING = "fields_missing"
    ALL_FIELDS_COLLECTED = "all_fields_collected"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_COMMITTED = "booking_committed"
    CUSTOMER_CANCELLED = "customer_cancelled"


@dataclass
class Transition:
    """One allowed move between session states."""
    from_state: SessionState
    to_state: SessionState
    trigger: SessionTrigger


class InvalidTransitionError(Exception):
    """Raised when a trigger does not apply to the session's current state."""


TERMINAL_STATES = frozenset({SessionState.BOOKED, SessionState.CANCELLED})


class SessionStateMachine:
    """Explicit transition table for one session. Anything not listed is rejected."""

    TRANSITIONS: list[Transition] = [
        # --- Collecting ---
        Transition(SessionState.COLLECTING_INFO, SessionState.COLLECTING_INFO,
                   SessionTrigger.FIELDS_MISSING),
        Transition(SessionState.COLLECTING_INFO, SessionState.CONFIRMING,
                   SessionTrigger.ALL_FIELDS_COLLECTED),
        Transition(SessionState.COLLECTING_INFO, SessionState.CANCELLED,
                   SessionTrigger.CUSTOMER_CANCELLED),

        # --- Confirmation gate ---
        Transition(SessionState.CONFIRMING, SessionState.CONFIRMING,
                   SessionTrigger.ALL_FIELDS_COLLECTED),
        Transition(SessionState.CONFIRMING, SessionState.COLLECTING_INFO,
                   SessionTrigger.FIELDS_MISSING),
        Transition(SessionState.CONFIRMING, SessionState.CONFIRMING,
                   SessionTrigger.BOOKING_REJECTED),
        Transition(SessionState.CONFIRMING, SessionState.BOOKED,
                   SessionTrigger.BOOKING_COMMITTED),
        Transition(SessionState.CONFIRMING, SessionState.CANCELLED,
                   SessionTrigger.CUSTOMER_CANCELLED),
    ]

    def __init__(self, state: SessionState = SessionState.COLLECTING_INFO) -> None:
        self._current_state = state
        self._trace: list[SessionState] = [state]

    @property
    def current_state(self) -> SessionState:
        return self._current_state

    def transition(self, trigger: SessionTrigger) -> SessionState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._trace.append(t.to_state)
                logger.debug(
                    "Session transition: %s -> %s (trigger: %s)",
                    old_state.value, t.to_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[SessionTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_state_trace(self) -> list[str]:
        return [state.value for state in self._trace]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
