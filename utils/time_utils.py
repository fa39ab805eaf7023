"""Time range, bucketing and duration utilities.

SQLite hands timezone-aware columns back as naive datetimes, so every value
read from storage goes through :func:`ensure_utc` before arithmetic.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_TIME_RANGE_PATTERN = re.compile(r"^(\d+)([mhd])$")

_UNIT_SECONDS = {"m": 60, "h": 3600, "d": 86400}

GRANULARITY_DELTAS = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_time_range(value: str) -> timedelta:
    """Parse a compact range such as ``15m``, ``24h`` or ``7d``.

    Examples:
        >>> parse_time_range("24h")
        datetime.timedelta(days=1)
        >>> parse_time_range("90m")
        datetime.timedelta(seconds=5400)

    Raises:
        ValueError: If the value is not ``<positive int><m|h|d>``.
    """
    match = _TIME_RANGE_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid time range '{value}', expected e.g. 15m, 24h, 7d")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Time range must be positive, got '{value}'")
    return timedelta(seconds=amount * _UNIT_SECONDS[match.group(2)])


def floor_datetime(value: datetime, step: timedelta) -> datetime:
    """Floor a datetime to a multiple of ``step`` since the Unix epoch.

    Weeks therefore start on Thursday (the epoch weekday); day and hour
    buckets line up with UTC midnight and the top of the hour.
    """
    value = ensure_utc(value)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    seconds = int((value - epoch).total_seconds())
    step_seconds = int(step.total_seconds())
    return epoch + timedelta(seconds=seconds - seconds % step_seconds)


def format_duration(value: Optional[timedelta]) -> str:
    """Format a duration as ``HH:MM:SS.fff``.

    Examples:
        >>> format_duration(timedelta(seconds=1.5))
        '00:00:01.500'
        >>> format_duration(None)
        '00:00:00.000'
    """
    if value is None:
        value = timedelta(0)
    total_ms = int(round(value.total_seconds() * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    seconds, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
