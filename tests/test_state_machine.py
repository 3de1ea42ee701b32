"""Tests for the booking session state machine."""

import pytest

from gemach.conversation.state_machine import (
    InvalidTransitionError,
    SessionStateMachine,
    SessionTrigger,
)
from gemach.schemas.conversation_schema import SessionState


class TestInitialState:
    def test_starts_collecting(self, state_machine):
        assert state_machine.current_state == SessionState.COLLECTING_INFO

    def test_initial_trace_has_one_entry(self, state_machine):
        assert state_machine.get_state_trace() == ["collecting_info"]

    def test_not_terminal_at_start(self, state_machine):
        assert not state_machine.is_terminal()

    def test_resume_from_saved_state(self):
        sm = SessionStateMachine(SessionState.CONFIRMING)
        assert sm.current_state == SessionState.CONFIRMING


class TestCollecting:
    def test_missing_fields_stays_collecting(self, state_machine):
        assert state_machine.transition(SessionTrigger.FIELDS_MISSING) == SessionState.COLLECTING_INFO

    def test_all_fields_moves_to_confirming(self, state_machine):
        assert state_machine.transition(SessionTrigger.ALL_FIELDS_COLLECTED) == SessionState.CONFIRMING

    def test_cancel_while_collecting(self, state_machine):
        assert state_machine.transition(SessionTrigger.CUSTOMER_CANCELLED) == SessionState.CANCELLED
        assert state_machine.is_terminal()

    def test_cannot_commit_without_confirming(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(SessionTrigger.BOOKING_COMMITTED)

    def test_cannot_reject_while_collecting(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(SessionTrigger.BOOKING_REJECTED)


class TestConfirming:
    def setup_method(self):
        self.sm = SessionStateMachine()
        self.sm.transition(SessionTrigger.ALL_FIELDS_COLLECTED)

    def test_commit_books(self):
        assert self.sm.transition(SessionTrigger.BOOKING_COMMITTED) == SessionState.BOOKED
        assert self.sm.is_terminal()

    def test_rejection_keeps_confirming(self):
        assert self.sm.transition(SessionTrigger.BOOKING_REJECTED) == SessionState.CONFIRMING

    def test_revision_keeps_confirming(self):
        assert self.sm.transition(SessionTrigger.ALL_FIELDS_COLLECTED) == SessionState.CONFIRMING

    def test_lost_field_returns_to_collecting(self):
        assert self.sm.transition(SessionTrigger.FIELDS_MISSING) == SessionState.COLLECTING_INFO

    def test_cancel_while_confirming(self):
        assert self.sm.transition(SessionTrigger.CUSTOMER_CANCELLED) == SessionState.CANCELLED

    def test_valid_triggers(self):
        assert set(self.sm.get_valid_triggers()) == {
            SessionTrigger.ALL_FIELDS_COLLECTED,
            SessionTrigger.FIELDS_MISSING,
            SessionTrigger.BOOKING_REJECTED,
            SessionTrigger.BOOKING_COMMITTED,
            SessionTrigger.CUSTOMER_CANCELLED,
        }


class TestTerminalStates:
    @pytest.mark.parametrize("state", [SessionState.BOOKED, SessionState.CANCELLED])
    def test_no_transitions_out(self, state):
        sm = SessionStateMachine(state)
        assert sm.get_valid_triggers() == []
        for trigger in SessionTrigger:
            with pytest.raises(InvalidTransitionError):
                sm.transition(trigger)

    def test_error_names_valid_triggers(self, state_machine):
        with pytest.raises(InvalidTransitionError, match="all_fields_collected"):
            state_machine.transition(SessionTrigger.BOOKING_COMMITTED)


class TestStateTrace:
    def test_trace_records_every_step(self, state_machine):
        state_machine.transition(SessionTrigger.FIELDS_MISSING)
        state_machine.transition(SessionTrigger.ALL_FIELDS_COLLECTED)
        state_machine.transition(SessionTrigger.BOOKING_REJECTED)
        state_machine.transition(SessionTrigger.BOOKING_COMMITTED)
        assert state_machine.get_state_trace() == [
            "collecting_info", "collecting_info", "confirming", "confirming", "booked",
        ]

    def test_failed_transition_not_recorded(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(SessionTrigger.BOOKING_COMMITTED)
        assert state_machine.get_state_trace() == ["collecting_info"]
