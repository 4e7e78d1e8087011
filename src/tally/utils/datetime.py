"""Datetime utilities with consistent UTC timezone handling.

All timestamps handled by tally are timezone-aware and use UTC. The TODO.md
format stores dates to the day and timestamps to the minute; the helpers here
produce and parse exactly those text forms.
"""

from datetime import date, datetime, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M"


def now_utc() -> datetime:
    """Return current datetime in UTC timezone."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Return the current UTC calendar date."""
    return now_utc().date()


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def truncate_to_minute(dt: datetime) -> datetime:
    """Drop seconds and microseconds, the resolution TODO.md can hold."""
    return ensure_aware(dt).replace(second=0, microsecond=0)


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_datetime(dt: datetime) -> str:
    return ensure_aware(dt).strftime(DATETIME_FORMAT)


def parse_date(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the text does not match the format
    """
    return datetime.strptime(text.strip(), DATE_FORMAT).date()


def parse_datetime(text: str) -> datetime:
    """Parse a ``YYYY-MM-DD HH:MM`` string into an aware UTC datetime.

    Raises:
        ValueError: If the text does not match the format
    """
    return ensure_aware(datetime.strptime(text.strip(), DATETIME_FORMAT))


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info."""
    if dt is None:
        return None

    return ensure_aware(dt).isoformat()


def from_iso_string(text: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z`` for UTC.

    Raises:
        ValueError: If the text is not a valid ISO-8601 timestamp
    """
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))
