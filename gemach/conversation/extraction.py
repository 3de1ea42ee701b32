"""
Message extraction: raw SMS text to an intent plus partial booking fields.

The LLM extractor is the primary path. The keyword extractor is the
conservative fallback used whenever the LLM errors, returns something
unusable, or is not confident. The fallback never invents a field it
cannot find literally in the text.
"""

import json
import logging
import re
from typing import Any, Optional, Protocol, Union

from openai import OpenAI
from pydantic import ValidationError

from gemach.config import settings
from gemach.prompts.system_prompts import build_extraction_prompt
from gemach.schemas.conversation_schema import CollectedFields, Extraction, Intent

logger = logging.getLogger(__name__)


class ExtractionOracle(Protocol):
    """Anything that can interpret one inbound message."""

    def extract(self, text: str, existing: CollectedFields) -> Union[Extraction, dict[str, Any]]:
        ...


class OpenAIExtractor:
    """Extraction through the OpenAI chat completions API in JSON mode."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None) -> None:
        self.client = client or OpenAI(timeout=settings.model.request_timeout_sec)
        self.model = model or settings.model.llm_model

    def extract(self, text: str, existing: CollectedFields) -> Extraction:
        """Raises on transport errors and on malformed output."""
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": build_extraction_prompt(existing)},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
            temperature=settings.model.llm_temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("Empty response from extraction model")
        return Extraction.model_validate(json.loads(content))


_CANCEL_PATTERN = re.compile(r"\bcancel")
_CONFIRM_PATTERN = re.compile(r"\b(yes|yeah|yep|confirm\w*|sounds good|perfect|great)\b")
_QUESTION_PATTERN = re.compile(r"\b(where|when|how|what|can i)\b")
_GREETING_WORDS = ("hi", "hello", "hey", "shalom")
_PHONE_PATTERN = re.compile(r"(?<!\d)(\+?1[-.\s]?)?(\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4})(?!\d)")
_PARTY_PATTERN = re.compile(r"\b(\d{1,2})\s*(?:people|person|persons|ppl|of us|girls)\b", re.IGNORECASE)


class KeywordExtractor:
    """Deterministic fallback: literal keywords for intents, regexes for phone and party size."""

    def extract(self, text: str, existing: Optional[CollectedFields] = None) -> Extraction:
        lower = text.lower().strip()

        if _CANCEL_PATTERN.search(lower):
            return Extraction(intent=Intent.CANCELLATION, confidence=0.6)
        if _CONFIRM_PATTERN.search(lower):
            return Extraction(intent=Intent.CONFIRMATION, confidence=0.6)
        if "?" in lower or _QUESTION_PATTERN.search(lower):
            return Extraction(intent=Intent.QUESTION, question=text.strip(), confidence=0.5)

        fields: dict[str, Any] = {}
        phone = _PHONE_PATTERN.search(text)
        if phone:
            fields["phone"] = phone.group(0).strip()
        party = _PARTY_PATTERN.search(text)
        if party:
            fields["party_size"] = int(party.group(1))
        if fields:
            return Extraction(intent=Intent.BOOKING, extracted=CollectedFields(**fields), confidence=0.4)

        if any(lower == word or lower.startswith(word + " ") or lower.startswith(word + "!")
               for word in _GREETING_WORDS):
            return Extraction(intent=Intent.GREETING, confidence=0.7)

        return Extraction(intent=Intent.UNKNOWN, confidence=0.2)


def extract_with_fallback(
    oracle: Optional[ExtractionOracle],
    text: str,
    existing: CollectedFields,
    min_confidence: Optional[float] = None,
) -> Extraction:
    """Run the oracle, degrading to the keyword extractor on any failure or low confidence."""
    fallback = KeywordExtractor()
    if oracle is None:
        return fallback.extract(text, existing)

    threshold = settings.model.min_confidence if min_confidence is None else min_confidence
    try:
        raw = oracle.extract(text, existing)
        result = raw if isinstance(raw, Extraction) else Extraction.model_validate(raw)
    except (ValidationError, ValueError, TypeError) as exc:
        logger.warning("Extraction oracle returned malformed output, using keyword fallback: %s", exc)
        return fallback.extract(text, existing)
    except Exception:
        logger.warning("Extraction oracle failed, using keyword fallback", exc_info=True)
        return fallback.extract(text, existing)

    if result.confidence < threshold:
        logger.info(
            "Extraction confidence %.2f below %.2f, using keyword fallback",
            result.confidence, threshold,
        )
        return fallback.extract(text, existing)
    return result
