"""
Voice channel tool handler.

The phone assistant collects details itself and calls these tools. Each
returns a ``ToolResult``: ``success``, a sentence the assistant can say
as-is, and optional structured ``data``. Booking errors become spoken
next steps, never raw errors.
"""

import json
import re
import uuid
from datetime import date
from typing import Any, Callable, Optional, TypedDict

from gemach.config import settings
from gemach.db.store import Store
from gemach.errors import (
    DateParseFailure,
    PartySizeExceeded,
    PartySizeRequiresLastSlot,
    SlotUnavailable,
)
from gemach.logging_context import get_message_logger, set_message_id
from gemach.tools.availability import check_availability, free_slots_for, get_available_dates
from gemach.tools.booking import create_booking
from gemach.tools.calendar_rules import slots_for, weekday_for
from gemach.tools.dates import format_date, match_slot_label, parse_date
from gemach.tools.faq import FAQ_TOPICS, match_topic
from gemach.utils import format_phone_display

logger = get_message_logger(__name__)

_biz = settings.business


class ToolResult(TypedDict, total=False):
    """Structured result returned to the voice platform."""

    success: bool
    message: str
    data: dict[str, Any]


def _party_size(value: Any) -> Optional[int]:
    if isinstance(value, int):
        return value
    match = re.search(r"\d+", str(value or ""))
    return int(match.group()) if match else None


class VoiceToolHandler:
    """Dispatches voice tool calls by name."""

    def __init__(self, store: Store, today: Optional[Callable[[], date]] = None) -> None:
        self.store = store
        self._today = today or date.today
        self._tools: dict[str, Callable[[dict[str, Any]], ToolResult]] = {
            "checkAvailability": self.check_availability,
            "createBooking": self.create_booking,
            "getBusinessInfo": self.get_business_info,
        }

    def handle_tool_call(self, name: str, args: Optional[dict[str, Any]] = None) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Unknown voice tool: %s", name)
            return {"success": False, "message": f"Unknown tool: {name}"}
        try:
            return tool(args or {})
        except Exception:
            logger.exception("Voice tool %s failed", name)
            return {
                "success": False,
                "message": (
                    "I'm having trouble with that right now. Could you please text us at "
                    f"{_biz.booking_text_line} to complete your reservation?"
                ),
            }

    def handle_tool_calls(self, tool_calls: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Process a batch of platform tool calls ``{id, function: {name, arguments}}``."""
        results = []
        for call in tool_calls:
            call_id = call.get("id") or f"call-{uuid.uuid4().hex[:8]}"
            set_message_id(call_id)
            function = call.get("function") or {}
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    logger.warning("Tool call %s has unparseable arguments", call_id)
                    arguments = {}
            result = self.handle_tool_call(function.get("name", ""), arguments)
            results.append({"toolCallId": call_id, "result": result})
        return results

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #

    def check_availability(self, args: dict[str, Any]) -> ToolResult:
        today = self._today()
        try:
            day = parse_date(str(args.get("date", "")), today)
        except DateParseFailure:
            return {
                "success": False,
                "message": (
                    "I couldn't understand that date. Could you say it differently? "
                    "For example, 'this Wednesday' or 'next Motzei Shabbos'."
                ),
            }

        if weekday_for(day) is None:
            upcoming = ", ".join(d["day_name"] for d in get_available_dates(self.store, today))
            return {
                "success": False,
                "message": (
                    "We only have appointments on Wednesdays and Motzei Shabbos. "
                    f"The next available dates are: {upcoming}."
                ),
                "data": {"available": False},
            }

        result = check_availability(self.store, day)
        data: dict[str, Any] = dict(result)
        if result["available"]:
            return {"success": True, "message": result["message"], "data": data}

        alternatives = get_available_dates(self.store, day)
        data["alternatives"] = alternatives
        names = ", ".join(entry["day_name"] for entry in alternatives)
        message = result["message"]
        if names:
            message += f" Would you like to try: {names}?"
        return {"success": True, "message": message, "data": data}

    def create_booking(self, args: dict[str, Any]) -> ToolResult:
        today = self._today()
        try:
            appointment_day = parse_date(str(args.get("appointmentDate", "")), today)
        except DateParseFailure:
            return {
                "success": False,
                "message": "I couldn't understand the appointment date. Could you tell me the date again?",
            }
        if appointment_day < today:
            logger.info("Voice booking asked for past date %s", appointment_day)
            alternatives = get_available_dates(self.store, today)
            names = ", ".join(entry["day_name"] for entry in alternatives)
            message = f"{format_date(appointment_day)} has already passed."
            if names:
                message += f" Would you like to try: {names}?"
            return {"success": False, "message": message, "data": {"alternatives": alternatives}}
        try:
            wedding_day = parse_date(str(args.get("weddingDate", "")), today)
        except DateParseFailure:
            return {
                "success": False,
                "message": "I couldn't understand the wedding date. Could you tell me when your wedding is?",
            }

        name = str(args.get("name") or "").strip()
        phone = str(args.get("phone") or "").strip()
        party_size = _party_size(args.get("groupSize", args.get("partySize")))
        if not name or not phone or party_size is None:
            return {
                "success": False,
                "message": "I still need your name, phone number and group size to book.",
            }

        requested = str(args.get("slotTime") or "")
        slot = match_slot_label(requested, slots_for(appointment_day)) or requested
        try:
            booking = create_booking(
                self.store,
                name=name,
                phone=phone,
                appointment_date=appointment_day,
                slot_time=slot,
                party_size=party_size,
                wedding_date=wedding_day,
            )
        except PartySizeExceeded as exc:
            return {
                "success": False,
                "message": (
                    f"I'm sorry, we can only accommodate groups of up to {exc.max_party_size} people. "
                    "Would you like to book with a smaller group?"
                ),
            }
        except PartySizeRequiresLastSlot as exc:
            return {
                "success": False,
                "message": (
                    f"For groups of {exc.party_size}, you'll need our 30-minute slot which is the "
                    f"last slot of the evening at {exc.required_slot}. Would that work for you?"
                ),
                "data": {"required_slot": exc.required_slot},
            }
        except SlotUnavailable:
            return self._slot_unavailable(appointment_day, slot)

        logger.info("Voice booking created: %s", booking.id)
        return {
            "success": True,
            "message": (
                f"Wonderful! Your appointment is confirmed for {format_date(appointment_day)} "
                f"at {booking.slot_time}. You'll receive a text confirmation at "
                f"{format_phone_display(phone)}. "
                f"We're located at {_biz.address}. {_biz.entrance}. "
                "Mazel tov on your upcoming wedding!"
            ),
            "data": {"bookingId": booking.id, "slotDuration": booking.slot_duration},
        }

    def _slot_unavailable(self, day: date, slot: str) -> ToolResult:
        open_slots = free_slots_for(self.store, day)
        if open_slots:
            return {
                "success": False,
                "message": (
                    f"Sorry, {slot or 'that time'} is not available. I do have these slots open: "
                    f"{', '.join(open_slots)}. Would one of those work?"
                ),
                "data": {"slots": open_slots},
            }
        alternatives = get_available_dates(self.store, day)
        names = ", ".join(entry["day_name"] for entry in alternatives)
        if not names:
            return {
                "success": False,
                "message": (
                    "Sorry, that date is fully booked. Please text us at "
                    f"{_biz.booking_text_line} and we'll find you a time."
                ),
            }
        return {
            "success": False,
            "message": f"Sorry, that date is fully booked. Would you like to try: {names}?",
            "data": {"alternatives": alternatives},
        }

    def get_business_info(self, args: dict[str, Any]) -> ToolResult:
        topic = str(args.get("topic") or "").lower().strip()
        if topic not in FAQ_TOPICS:
            topic = match_topic(topic) or ""
        info = FAQ_TOPICS.get(topic)
        if info is None:
            return {"success": False, "message": "I don't have specific information about that topic."}
        return {"success": True, "message": info, "data": {"topic": topic}}
