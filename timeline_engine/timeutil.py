"""
UTC instant helpers.

Leaf module: imported by contracts and temporal alike.
"""

from datetime import datetime, timezone


SECONDS_PER_DAY = 86400.0


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize an instant to UTC.

    Naive datetimes are interpreted as UTC, aware ones are converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end precedes start)."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_DAY
