"""UTC datetime utilities."""

from datetime import datetime, timezone

DATE_KEY_FORMAT = "%Y.%m.%d"


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Naive values (as returned by SQLite) are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_key(value: datetime) -> str:
    """
    Return the daily-sentiment key for an event timestamp.

    Example:
        >>> date_key(datetime(2025, 6, 1, 23, 59, tzinfo=timezone.utc))
        '2025.06.01'
    """
    return as_utc(value).strftime(DATE_KEY_FORMAT)


def from_epoch(seconds: float) -> datetime:
    """Convert a transport epoch timestamp (seconds) to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
