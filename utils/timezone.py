"""UTC timestamps for lockouts, token expiry and session records.

Every datetime the service stores or compares is timezone-aware UTC. Naive
values are rejected rather than guessed at.
"""

import math
from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Current time in UTC. Use instead of datetime.now()."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to UTC. Raises ValueError if dt is naive."""
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 string written by isoformat() back to UTC.

    Raises ValueError if the string carries no offset.
    """
    parsed = datetime.fromisoformat(iso_string)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp '{iso_string}' has no UTC offset")
    return to_utc(parsed)


def minutes_until(moment: datetime, now: datetime) -> int:
    """Whole minutes from now until moment, rounded up. Zero if already past."""
    seconds = (moment - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


def years_since(born: date, today: date) -> int:
    """Completed years between born and today (age on today's date)."""
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years
