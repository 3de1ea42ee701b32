"""
Offline console demo: SMS booking conversations against an in-memory store.

Scenarios replay scripted messages through the real conversation engine,
booking engine and schedule rules. Message interpretation for scripted
steps is fixed in advance, so no API key or network call is needed.
Interactive mode uses the OpenAI extractor when OPENAI_API_KEY is set and
the keyword fallback otherwise.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario large_group
"""

import argparse
import os
from typing import Any, Optional

from gemach.agents.sms_agent import SmsAgent
from gemach.config import settings
from gemach.conversation.engine import ConversationEngine
from gemach.conversation.extraction import ExtractionOracle, KeywordExtractor, OpenAIExtractor
from gemach.conversation.sessions import get_session
from gemach.db.store import Store
from gemach.schemas.conversation_schema import CollectedFields, Extraction
from gemach.tools.booking import active_booking_for_phone
from gemach.tools.customer import lookup_customer
from gemach.tools.message_log import recent_messages
from gemach.utils import utc_now

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PHONE = "+15551234567"


class ScriptedExtractor:
    """Returns a fixed interpretation for known lines, keyword fallback for the rest."""

    def __init__(self, script: dict[str, dict[str, Any]]) -> None:
        self._script = script
        self._fallback = KeywordExtractor()

    def extract(self, text: str, existing: CollectedFields) -> Extraction:
        scripted = self._script.get(text)
        if scripted is None:
            return self._fallback.extract(text, existing)
        return Extraction.model_validate({"confidence": 0.9, **scripted})


# Each step is (message text, scripted interpretation or None for keyword fallback)
SCENARIOS: dict[str, list[tuple[str, Optional[dict[str, Any]]]]] = {
    "booking": [
        ("Hi", None),
        (
            "Sarah, this Wednesday, 2 people, wedding June 10, 555-123-4567",
            {
                "intent": "booking",
                "extractedData": {
                    "name": "Sarah",
                    "appointmentDate": "this Wednesday",
                    "groupSize": 2,
                    "weddingDate": "June 10",
                    "phone": "555-123-4567",
                },
            },
        ),
        ("yes", None),
    ],
    "partial": [
        (
            "I'd like to come Motzei Shabbos at 8",
            {"intent": "booking", "extractedData": {"appointmentDate": "Motzei Shabbos", "slotTime": "8:00 PM"}},
        ),
        ("Rivka Klein, 3 of us", {"intent": "booking", "extractedData": {"name": "Rivka Klein", "groupSize": 3}}),
        (
            "wedding is August 4, my number 347-555-0101",
            {"intent": "booking", "extractedData": {"weddingDate": "August 4", "phone": "347-555-0101"}},
        ),
        ("yes", None),
    ],
    "large_group": [
        (
            "Leah, next Wednesday at 11:30, 6 people, wedding Sept 1, 718-555-0199",
            {
                "intent": "booking",
                "extractedData": {
                    "name": "Leah",
                    "appointmentDate": "next Wednesday",
                    "slotTime": "11:30 AM",
                    "groupSize": 6,
                    "weddingDate": "Sept 1",
                    "phone": "718-555-0199",
                },
            },
        ),
        ("yes", None),
        ("ok 12:15 then", {"intent": "booking", "extractedData": {"slotTime": "12:15 PM"}}),
        ("yes", None),
    ],
    "info": [
        ("Where are you located?", None),
        ("How much is the donation?", None),
        ("Do you rent veils?", None),
    ],
}


class ConsoleSession:
    """Drives the SMS agent from the terminal."""

    MAX_INPUT_LENGTH = 500

    def __init__(self, store: Optional[Store] = None, oracle: Optional[ExtractionOracle] = None) -> None:
        self.store = store or Store.from_url("sqlite://")
        self.engine = ConversationEngine(self.store, oracle)
        self.agent = SmsAgent(self.store, engine=self.engine)

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Gemach]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _log_session(self) -> None:
        session = get_session(self.store, DEMO_PHONE, utc_now())
        if session is None:
            self.system_log("Session: none")
        else:
            self.system_log(f"Session: {session.state.value}, missing={session.missing_fields}")

    def send(self, text: str) -> None:
        print(f"\n{BLUE}[Customer] {RESET}{text}")
        self.agent_say(self.agent.handle(DEMO_PHONE, text))
        self._log_session()

    def show_history(self, phone: str = DEMO_PHONE) -> None:
        """Print what the store knows about ``phone``: customer, active booking, messages."""
        customer = lookup_customer(self.store, phone)
        self.system_log(f"Customer: {customer.name if customer else 'unknown'}")
        booking = active_booking_for_phone(self.store, phone)
        if booking is not None:
            self.system_log(f"Active booking: {booking.id} ({booking.appointment_date} {booking.slot_time})")
        for entry in recent_messages(self.store, phone, limit=10):
            arrow = "<-" if entry["direction"] == "inbound" else "->"
            text = " ".join(entry["message"].split())[:80]
            self.system_log(f"{arrow} {text}")

    def run_scenario(self, scenario: str) -> None:
        """Play one of the canned conversations through the real engine."""
        steps = SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        script = {text: scripted for text, scripted in steps if scripted is not None}
        self.engine.oracle = ScriptedExtractor(script)

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SMS BOOKING DEMO - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        for text, _ in steps:
            self.send(text)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SMS BOOKING DEMO - Console{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}  Type 'history' for the stored record, 'quit' to exit{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        while True:
            user_input = input(f"\n{BLUE}[Customer] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if user_input.lower() == "history":
                self.show_history()
                continue
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say(f"{YELLOW}That was quite long. Could you keep it brief?{RESET}")
                continue
            self.agent_say(self.agent.handle(DEMO_PHONE, user_input))
            self._log_session()


def build_oracle() -> Optional[ExtractionOracle]:
    """The OpenAI extractor when a key is configured, otherwise None (keyword fallback)."""
    if os.getenv("OPENAI_API_KEY"):
        return OpenAIExtractor()
    return None


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline SMS booking demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    if args.scenario:
        ConsoleSession().run_scenario(args.scenario)
    else:
        ConsoleSession(oracle=build_oracle()).run()


if __name__ == "__main__":
    main()
