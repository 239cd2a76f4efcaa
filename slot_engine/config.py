"""
Centralized configuration with environment variable overrides.

Schedule defaults for new providers, booking policy switches, and
logging settings are configurable here. Nothing is hardcoded in the
scheduling or lifecycle logic.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag from an env var (true/false, yes/no, 1/0)."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


def _safe_days(env_var: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated list of weekday names."""
    raw = os.getenv(env_var, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ScheduleDefaults:
    """Schedule materialized for providers that have never configured one."""

    day_start: str = os.getenv("DEFAULT_DAY_START", "09:00")
    day_end: str = os.getenv("DEFAULT_DAY_END", "17:00")
    working_days: tuple[str, ...] = _safe_days(
        "DEFAULT_WORKING_DAYS", "monday,tuesday,wednesday,thursday,friday"
    )
    buffer_time: int = _safe_int("DEFAULT_BUFFER_TIME", "15")
    min_notice_hours: int = _safe_int("DEFAULT_MIN_NOTICE_HOURS", "24")
    max_advance_days: int = _safe_int("DEFAULT_MAX_ADVANCE_DAYS", "30")
    auto_accept: bool = _safe_bool("DEFAULT_AUTO_ACCEPT", "false")
    max_concurrent: int = _safe_int("DEFAULT_MAX_CONCURRENT", "1")


@dataclass(frozen=True)
class BookingPolicy:
    """Booking creation and conflict-check policy."""

    booking_number_prefix: str = os.getenv("BOOKING_NUMBER_PREFIX", "RZ")
    enforce_buffer_time: bool = _safe_bool("ENFORCE_BUFFER_TIME", "false")
    default_slot_duration: int = _safe_int("DEFAULT_SLOT_DURATION", "60")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    schedule: ScheduleDefaults = field(default_factory=ScheduleDefaults)
    booking: BookingPolicy = field(default_factory=BookingPolicy)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "provider-slot-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    for name, value in [("DEFAULT_DAY_START", schedule.day_start), ("DEFAULT_DAY_END", schedule.day_end)]:
        if not _HHMM.match(value):
            raise ValueError(f"{name} must be HH:MM, got {value!r}")
    if schedule.day_start >= schedule.day_end:
        raise ValueError(
            f"DEFAULT_DAY_START must be before DEFAULT_DAY_END, "
            f"got {schedule.day_start} >= {schedule.day_end}"
        )
    unknown = [day for day in schedule.working_days if day not in _WEEKDAYS]
    if unknown:
        raise ValueError(f"DEFAULT_WORKING_DAYS contains unknown days: {unknown}")
    if schedule.buffer_time < 0:
        raise ValueError(f"DEFAULT_BUFFER_TIME must be >= 0, got {schedule.buffer_time}")
    if schedule.min_notice_hours < 0:
        raise ValueError(
            f"DEFAULT_MIN_NOTICE_HOURS must be >= 0, got {schedule.min_notice_hours}"
        )
    if schedule.max_advance_days < 1:
        raise ValueError(
            f"DEFAULT_MAX_ADVANCE_DAYS must be >= 1, got {schedule.max_advance_days}"
        )
    if schedule.max_concurrent < 1:
        raise ValueError(
            f"DEFAULT_MAX_CONCURRENT must be >= 1, got {schedule.max_concurrent}"
        )

    if not config.booking.booking_number_prefix.strip():
        raise ValueError("BOOKING_NUMBER_PREFIX must not be empty")
    if config.booking.default_slot_duration < 1:
        raise ValueError(
            f"DEFAULT_SLOT_DURATION must be >= 1, got {config.booking.default_slot_duration}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
