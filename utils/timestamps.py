"""
UTC timestamp helpers.

Timestamps are written by the application (never by column defaults) so the
stored format is identical on every backend and plain string comparison
orders them correctly.

Format: "YYYY-MM-DD HH:MM:SS" (UTC)
"""
from datetime import datetime, timezone, timedelta
from typing import Optional, Union

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def utc_iso() -> str:
    """
    Current UTC time as "YYYY-MM-DD HH:MM:SS".

    Uses a space separator (not T) to match what Postgres renders for
    timestamp columns.
    """
    return utc_now().strftime(TIMESTAMP_FORMAT)


def parse_timestamp(s: Optional[str]) -> Optional[datetime]:
    """
    Parse a stored timestamp string (space or T separator, optional
    microseconds). Returns a naive datetime, or None for empty input.
    """
    if not s:
        return None

    normalized = s.replace("T", " ")
    for fmt in ("%Y-%m-%d %H:%M:%S.%f", TIMESTAMP_FORMAT, "%Y-%m-%d"):
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def format_timestamp(value: Union[datetime, str, None]) -> Optional[str]:
    """
    Render a timestamp read from the database.

    psycopg2 hands back datetime objects while other drivers return the
    stored text; both come out as "YYYY-MM-DD HH:MM:SS".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    parsed = parse_timestamp(str(value))
    return parsed.strftime(TIMESTAMP_FORMAT) if parsed else str(value)


def minutes_ago(minutes: int) -> str:
    """UTC timestamp string for N minutes ago (sweep cutoffs)."""
    past = utc_now() - timedelta(minutes=minutes)
    return past.strftime(TIMESTAMP_FORMAT)


def hours_ago(hours: int) -> str:
    """UTC timestamp string for N hours ago."""
    past = utc_now() - timedelta(hours=hours)
    return past.strftime(TIMESTAMP_FORMAT)
