"""
System prompt for the message extraction model.

Business values are injected from configuration. The model only reads
messages; it never decides availability or books anything.
"""

import json

from gemach.config import settings
from gemach.schemas.conversation_schema import CollectedFields

_biz = settings.business
_limits = settings.schedule

BUSINESS_CONTEXT = f"""
You are an assistant for {_biz.name}, a wedding gown lending service in Brooklyn.
Your job is to parse incoming SMS messages and extract booking information.

APPOINTMENT HOURS (only these times are valid):
- Wednesday: 11:30 AM to 12:30 PM
- Motzei Shabbos (Saturday night): 7:30 PM to 9:30 PM
"""

EXTRACTION_RULES = f"""
REQUIRED BOOKING INFO:
1. Name
2. Appointment date and time (must be Wednesday or Motzei Shabbos)
3. Number of people in group (max {_limits.standard_party_size}, or {_limits.max_party_size} for the last slot)
4. Wedding date
5. Phone number

Respond in JSON format:
{{
  "intent": "booking" | "question" | "confirmation" | "cancellation" | "greeting" | "unknown",
  "extractedData": {{
    "name": "if found",
    "appointmentDate": "natural language date like 'this Wednesday' or 'January 25'",
    "slotTime": "if specified, like '11:30 AM' or '7:30 PM'",
    "groupSize": number,
    "weddingDate": "natural language date",
    "phone": "if found"
  }},
  "question": "if intent is question, what are they asking about",
  "confidence": 0.0-1.0
}}

RULES:
- Extract ONLY information explicitly stated in the message
- Do not make assumptions or fill in missing data
- Keep dates exactly as the customer wrote them; do not convert them
- If they're asking about hours, location, sizes, etc., intent is "question"
- If they say "yes", "confirm", "sounds good", intent is "confirmation"
- If they say "cancel", intent is "cancellation"
- If just "hi", "hello", intent is "greeting"
"""


def build_extraction_prompt(existing: CollectedFields) -> str:
    """Full system prompt including what the session already holds."""
    collected = json.dumps(existing.model_dump(exclude_none=True, by_alias=False), indent=2)
    return f"""{BUSINESS_CONTEXT}
EXISTING DATA already collected:
{collected}
{EXTRACTION_RULES}"""
