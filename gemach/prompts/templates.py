"""Customer-facing SMS text built from structured booking and session data."""

from datetime import date
from typing import Optional

from gemach.config import settings
from gemach.schemas.booking_schema import Booking
from gemach.schemas.conversation_schema import CollectedFields
from gemach.tools.dates import format_date, format_date_short
from gemach.tools.availability import DateAvailability

_biz = settings.business

FIELD_PROMPTS: dict[str, str] = {
    "name": "your name",
    "appointment_date": "the date you'd like to come",
    "party_size": "how many people in your group",
    "wedding_date": "your wedding date",
    "phone": "your phone number",
}


def _people(count: Optional[int]) -> str:
    count = count or 1
    return f"{count} {'person' if count == 1 else 'people'}"


def greeting() -> str:
    return (
        f"Hi! Welcome to {_biz.name} 👗\n\n"
        "To book an appointment, please text:\n"
        "1. Your name\n"
        "2. Date and time you'd like to come\n"
        "3. Number of people in your group\n"
        "4. Wedding date\n"
        "5. Phone number\n\n"
        "Or ask me any questions about our policies!"
    )


def missing_info(missing_fields: list[str]) -> str:
    """Ask for exactly the fields still missing."""
    missing = ", ".join(FIELD_PROMPTS.get(field, field) for field in missing_fields)
    return (
        "Thanks for reaching out! To complete your booking, please send:\n"
        f"{missing}"
    )


def confirmation_request(collected: CollectedFields) -> str:
    """Summary of a complete request, asking for an explicit YES."""
    return (
        "Great! Here's what I have:\n"
        f"📅 {collected.appointment_date} at {collected.slot_time or 'first open slot'}\n"
        f"👤 {collected.name}\n"
        f"👥 {_people(collected.party_size)}\n"
        f"💒 Wedding: {collected.wedding_date}\n"
        f"📱 {collected.phone}\n\n"
        "Reply YES to confirm or CANCEL to start over."
    )


def no_pending_request() -> str:
    return "I don't have a pending booking to confirm. Would you like to book an appointment?"


def request_cancelled() -> str:
    return "Your booking request has been cancelled. Text anytime to start a new booking!"


def booking_confirmed(booking: Booking) -> str:
    return (
        f"Hi {booking.customer_name}! ✨\n\n"
        f"Your appointment at {_biz.name} is confirmed:\n"
        f"📅 {format_date(booking.appointment_date)} at {booking.slot_time}\n"
        f"👥 {_people(booking.party_size)}\n\n"
        f"📍 {_biz.address}\n"
        f"   {_biz.entrance}\n\n"
        "Questions? Reply to this text.\n"
        "See you soon!"
    )


def slot_unavailable(requested: str, alternatives: list[str]) -> str:
    """Rejected booking with concrete alternatives, or the manager's number when there are none."""
    if not alternatives:
        return (
            f"Sorry, {requested} is not available and I couldn't find another open slot soon. "
            f"Please text the manager at {_biz.manager_phone} for help."
        )
    options = "\n".join(alternatives[: settings.schedule.alternatives_offered])
    return (
        f"Sorry, {requested} is not available.\n\n"
        f"Here are some open slots:\n{options}\n\n"
        "Reply with your preferred time!"
    )


def format_alternatives(dates: list[DateAvailability]) -> list[str]:
    return [f"{entry['day_name']}: {', '.join(entry['slots'])}" for entry in dates]


def party_size_needs_last_slot(party_size: int, last_slot: Optional[str]) -> str:
    if last_slot is None:
        return (
            f"Groups of {party_size} need our last slot of the evening, which isn't offered that day. "
            "Please pick another date."
        )
    return (
        f"Groups of {party_size} need a 30-minute slot, so we can only take you at {last_slot}. "
        f"Reply with {last_slot} or pick another date."
    )


def party_size_too_large(max_party_size: int) -> str:
    return (
        f"Sorry, we can host at most {max_party_size} people per appointment. "
        "Please reply with a smaller group size."
    )


def date_not_understood() -> str:
    return (
        "I couldn't understand the dates. Please try again with clear dates like "
        '"this Wednesday" or "January 25".'
    )


def generic_error() -> str:
    return (
        "Sorry, there was an error creating your booking. "
        f"Please try again or call {_biz.manager_phone}."
    )


def unknown_question() -> str:
    return (
        "I'm not sure about that. Please text the manager directly at "
        f"{_biz.manager_phone} for help, or try rephrasing your question."
    )


def day_before_reminder(booking: Booking) -> str:
    return (
        f"Reminder: Your {_biz.name} appointment is TOMORROW at {booking.slot_time}! 👗\n\n"
        f"📍 {_biz.address}\n"
        f"👥 Max {max(booking.party_size, settings.schedule.standard_party_size)} people in your group\n\n"
        f"See you soon, {booking.customer_name}!"
    )


def return_reminder(booking: Booking) -> str:
    return (
        f"Mazel Tov {booking.customer_name}! 🎉\n\n"
        "We hope your simcha was beautiful!\n\n"
        "Please return your gown by this Motzaei Shabbos with your donation.\n"
        "The door to the Gemach is always open, you can return anytime.\n\n"
        f"Thank you for choosing {_biz.name}!"
    )


def summary_line(booking: Booking) -> str:
    return (
        f"• {format_date_short(booking.appointment_date)} {booking.slot_time} - "
        f"{booking.customer_name} ({booking.party_size}p)"
    )


def weekly_summary(bookings: list[Booking]) -> str:
    if not bookings:
        return "📋 Weekly Summary: No appointments scheduled for this week."
    lines = "\n".join(summary_line(booking) for booking in bookings)
    return f"📋 This Week's Appointments ({len(bookings)}):\n\n{lines}\n\nHave a great week! 🙌"


def manager_daily_notice(label: str, bookings: list[Booking]) -> str:
    lines = "\n".join(summary_line(booking) for booking in bookings)
    return f"📋 {label} Appointments ({len(bookings)}):\n\n{lines}"


def admin_cancelled(name: str, appointment_date: date) -> str:
    return (
        f"Hi {name}, your {_biz.name} appointment on {format_date(appointment_date)} "
        "has been cancelled. Please text us to rebook if needed."
    )


def admin_rescheduled(name: str, new_date: date, new_time: str) -> str:
    return (
        f"Hi {name}, your appointment has been moved to {format_date(new_date)} at {new_time}. "
        "Reply if this doesn't work for you!"
    )
