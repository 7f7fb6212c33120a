"""
Timestamp utilities.

Stored documents carry ISO-8601 timestamps in the format produced by
JavaScript's ``Date.toISOString()`` (UTC, millisecond precision, ``Z`` suffix),
so files written by earlier clients and by this engine stay interchangeable.
"""

from collections.abc import Callable
from datetime import datetime

import pytz
from dateutil import parser

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(pytz.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Args:
        dt: Datetime to format (naive values are treated as UTC).

    Returns:
        String such as ``2024-01-15T10:30:00.000Z``.
    """
    dt = to_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime | None:
    """
    Parse an ISO-8601 timestamp leniently.

    Args:
        value: Timestamp string.

    Returns:
        UTC datetime, or None when the value cannot be parsed.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        return to_utc(parser.isoparse(value))
    except (ValueError, OverflowError):
        return None


def clamp_created(created: str | None, now: datetime) -> str:
    """
    Bound a document's creation time by the time of the current write.

    Args:
        created: Stored creation timestamp.
        now: Time of the write about to happen.

    Returns:
        ``created`` unchanged, or ``now`` formatted when ``created`` is
        missing, unparsable, or later than ``now``.
    """
    created_dt = parse_timestamp(created) if created else None
    if created_dt is None or created_dt > to_utc(now):
        return format_timestamp(now)
    return created
