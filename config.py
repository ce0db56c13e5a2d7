"""
Application settings loaded from the environment (and a local .env file).

Nothing is read at import time: call ``load_settings()`` once at process
start and hand the result to ``create_app``.
"""

import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from logging_context import RequestIdFilter

logger = logging.getLogger(__name__)

# Facility operating hours, local time, half-open [start, end)
FACILITY_START_HOUR = 6
FACILITY_END_HOUR = 22
SLOT_DURATION_HRS = 1

DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_RECENT_BOOKINGS_LIMIT = 15

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s [%(request_id)s]: %(message)s"


def _safe_int(env_var: str, default: int) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, str(default))
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


def _safe_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class FacilityHours:
    """Operating window of the facility, whole hours, half-open."""

    start_hour: int = FACILITY_START_HOUR
    end_hour: int = FACILITY_END_HOUR

    def hours(self) -> range:
        return range(self.start_hour, self.end_hour, SLOT_DURATION_HRS)


@dataclass(frozen=True)
class Settings:
    database_url: str
    hours: FacilityHours = FacilityHours()
    timezone: str = DEFAULT_TIMEZONE
    recent_bookings_limit: int = DEFAULT_RECENT_BOOKINGS_LIMIT
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    sql_echo: bool = False

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def validate_settings(settings: Settings) -> None:
    """Reject settings that would make the scheduling maths meaningless."""
    hours = settings.hours
    if not 0 <= hours.start_hour <= 23:
        raise ValueError(f"FACILITY_START_HOUR must be between 0 and 23, got {hours.start_hour}")
    if not 1 <= hours.end_hour <= 24:
        raise ValueError(f"FACILITY_END_HOUR must be between 1 and 24, got {hours.end_hour}")
    if hours.start_hour >= hours.end_hour:
        raise ValueError(
            "FACILITY_START_HOUR must be before FACILITY_END_HOUR, "
            f"got {hours.start_hour} >= {hours.end_hour}"
        )
    if settings.recent_bookings_limit < 1:
        raise ValueError(
            f"RECENT_BOOKINGS_LIMIT must be >= 1, got {settings.recent_bookings_limit}"
        )
    try:
        ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown FACILITY_TIMEZONE: {settings.timezone!r}") from None


def load_settings() -> Settings:
    """Load and validate settings from the environment."""
    load_dotenv()

    # Fail fast: there is no sensible default database.
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")

    origins = os.getenv("CORS_ORIGINS", "*")
    settings = Settings(
        database_url=database_url,
        hours=FacilityHours(
            start_hour=_safe_int("FACILITY_START_HOUR", FACILITY_START_HOUR),
            end_hour=_safe_int("FACILITY_END_HOUR", FACILITY_END_HOUR),
        ),
        timezone=os.getenv("FACILITY_TIMEZONE", DEFAULT_TIMEZONE),
        recent_bookings_limit=_safe_int("RECENT_BOOKINGS_LIMIT", DEFAULT_RECENT_BOOKINGS_LIMIT),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        sql_echo=_safe_bool("SQL_ECHO", False),
    )
    validate_settings(settings)
    return settings


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info(
        "Settings loaded: hours %02d:00-%02d:00 %s",
        settings.hours.start_hour,
        settings.hours.end_hour,
        settings.timezone,
    )
