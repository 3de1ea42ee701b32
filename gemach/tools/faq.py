"""Static FAQ topics with naive keyword matching on the raw message."""

import logging
from typing import Optional

from gemach.config import settings

logger = logging.getLogger(__name__)

_biz = settings.business

FAQ_TOPICS: dict[str, str] = {
    "hours": (
        "Appointment hours (by appointment only):\n"
        "• Wednesday: 11:30 AM to 12:30 PM\n"
        "• Motzaei Shabbos: 7:30 PM to 9:30 PM"
    ),
    "location": f"📍 {_biz.address}\n{_biz.entrance}",
    "sizes": "We carry gowns from little girls up to 1X.",
    "pickup": (
        "You can pick up your gown 2 weeks before your wedding. "
        "Text to arrange a pickup time!"
    ),
    "return": (
        "Please return gowns by Motzaei Shabbos after your wedding with your donation. "
        "The door is always open."
    ),
    "donation": (
        "Standard donation is $100. Chinuch/Kollel families donate at their discretion. "
        'Checks payable to "Gelber" or cash.'
    ),
    "alterations": (
        "Yes, you can alter the gown, but:\n"
        "• No cutting allowed\n"
        "• Use large stitches so work can be removed easily"
    ),
    "group": (
        f"Max {settings.schedule.standard_party_size} people per group. "
        f"Groups of up to {settings.schedule.max_party_size} need the last slot of the evening."
    ),
}

# Checked in order; the first topic with a matching keyword wins
TOPIC_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("hours", ("hour", "when", "time", "open")),
    ("location", ("where", "address", "location", "entrance")),
    ("sizes", ("size",)),
    ("pickup", ("pick up", "pickup")),
    ("return", ("return", "bring back")),
    ("donation", ("donat", "cost", "price", "pay", "how much")),
    ("alterations", ("alter", "seamstress", "tailor")),
    ("group", ("group", "how many", "people")),
]


def match_topic(query: str) -> Optional[str]:
    """Match a question to an FAQ topic. Returns None if no keyword matches."""
    normalized = query.lower()
    for topic, keywords in TOPIC_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return topic
    return None


def answer_question(query: str) -> Optional[str]:
    topic = match_topic(query)
    logger.debug("FAQ match for %r: %s", query, topic)
    return FAQ_TOPICS[topic] if topic else None


def get_all_topics() -> list[str]:
    return list(FAQ_TOPICS)
