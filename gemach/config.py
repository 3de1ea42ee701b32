"""
Booking service settings with environment variable overrides.

Business details, scheduling limits, model settings and store settings
are configurable here. Nothing is hardcoded in tool or channel logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from gemach.logging_context import MessageIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(message_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Read an integer setting, failing loudly when it does not parse."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Read a float setting, failing loudly when it does not parse."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Gemach contact details and location, overridable from the environment."""

    name: str = os.getenv("BUSINESS_NAME", "Gelber Gown Gemach")
    address: str = os.getenv("BUSINESS_ADDRESS", "1327 East 26th Street, Brooklyn, NY 11210")
    entrance: str = os.getenv(
        "BUSINESS_ENTRANCE", "Enter through the garage at the end of the driveway (left side)"
    )
    manager_phone: str = os.getenv("MANAGER_PHONE", "718-614-8390")
    booking_text_line: str = os.getenv("BOOKING_TEXT_LINE", "347-507-5981")


@dataclass(frozen=True)
class ScheduleConfig:
    """Booking limits and conversation timing."""

    session_idle_minutes: int = _safe_int("SESSION_IDLE_MINUTES", "60")
    standard_party_size: int = _safe_int("STANDARD_PARTY_SIZE", "4")
    max_party_size: int = _safe_int("MAX_PARTY_SIZE", "6")
    short_slot_minutes: int = _safe_int("SHORT_SLOT_MINUTES", "15")
    long_slot_minutes: int = _safe_int("LONG_SLOT_MINUTES", "30")
    alternatives_offered: int = _safe_int("ALTERNATIVES_OFFERED", "3")


@dataclass(frozen=True)
class ModelConfig:
    """Extraction LLM settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.2")
    request_timeout_sec: float = _safe_float("LLM_REQUEST_TIMEOUT", "10.0")
    min_confidence: float = _safe_float("EXTRACTION_MIN_CONFIDENCE", "0.3")


@dataclass(frozen=True)
class StoreConfig:
    """Persistent store location and commit retry policy."""

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///gemach.db")
    commit_retries: int = _safe_int("COMMIT_RETRIES", "3")
    retry_backoff_sec: float = _safe_float("COMMIT_RETRY_BACKOFF", "0.05")


@dataclass(frozen=True)
class AppConfig:
    """All settings groups for the booking service."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Reject settings the booking rules cannot work with."""
    schedule = config.schedule
    if schedule.session_idle_minutes < 1:
        raise ValueError(
            f"SESSION_IDLE_MINUTES must be >= 1, got {schedule.session_idle_minutes}"
        )
    if schedule.standard_party_size < 1:
        raise ValueError(
            f"STANDARD_PARTY_SIZE must be >= 1, got {schedule.standard_party_size}"
        )
    if schedule.max_party_size < schedule.standard_party_size:
        raise ValueError(
            "MAX_PARTY_SIZE must be >= STANDARD_PARTY_SIZE, "
            f"got {schedule.max_party_size} < {schedule.standard_party_size}"
        )
    if schedule.short_slot_minutes < 1 or schedule.long_slot_minutes < schedule.short_slot_minutes:
        raise ValueError(
            "LONG_SLOT_MINUTES must be >= SHORT_SLOT_MINUTES >= 1, "
            f"got {schedule.long_slot_minutes} and {schedule.short_slot_minutes}"
        )
    if schedule.alternatives_offered < 1:
        raise ValueError(
            f"ALTERNATIVES_OFFERED must be >= 1, got {schedule.alternatives_offered}"
        )

    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.request_timeout_sec <= 0:
        raise ValueError(
            f"LLM_REQUEST_TIMEOUT must be > 0, got {config.model.request_timeout_sec}"
        )
    if not 0.0 <= config.model.min_confidence <= 1.0:
        raise ValueError(
            "EXTRACTION_MIN_CONFIDENCE must be between 0.0 and 1.0, "
            f"got {config.model.min_confidence}"
        )

    if config.store.commit_retries < 1:
        raise ValueError(f"COMMIT_RETRIES must be >= 1, got {config.store.commit_retries}")
    if config.store.retry_backoff_sec < 0:
        raise ValueError(
            f"COMMIT_RETRY_BACKOFF must be >= 0, got {config.store.retry_backoff_sec}"
        )


def load_config() -> AppConfig:
    """Build the settings object from the environment, check it and set up logging."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Records from any logger need message_id before LOG_FORMAT can render them
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, MessageIdFilter) for f in handler.filters):
            handler.addFilter(MessageIdFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
