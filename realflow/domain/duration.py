"""
Timestamp parsing and job duration formatting.
"""

from datetime import datetime

import pendulum
from pendulum import DateTime

from .exceptions import MalformedTimestampError
from .models import Timestamp

ZERO_DURATION = "00:00:00"


def parse_timestamp(value: Timestamp, timezone: str = "Asia/Shanghai") -> DateTime:
    """
    Parse a feed timestamp into a pendulum DateTime.

    Naive values (strings without an offset and naive ``datetime`` objects)
    are interpreted in ``timezone``.

    Raises:
        MalformedTimestampError: If the value is not a parseable date-time
    """
    if isinstance(value, datetime):
        return pendulum.instance(value, tz=timezone)

    if not isinstance(value, str):
        raise MalformedTimestampError(value)

    try:
        dt = pendulum.parse(value.strip(), tz=timezone, strict=False)
        # Offsets outside +/-24h parse but fail on any arithmetic
        if isinstance(dt, DateTime):
            dt.utcoffset()
    except (ValueError, OverflowError) as exc:
        raise MalformedTimestampError(value) from exc

    # Bare dates, times and ISO durations are not accepted as timestamps
    if not isinstance(dt, DateTime):
        raise MalformedTimestampError(value)

    return dt


def format_duration(total_seconds: float) -> str:
    """
    Format a number of seconds as zero-padded HH:MM:SS.

    Hours are not wrapped at 24, and anything at or below zero is 00:00:00.
    """
    seconds = int(total_seconds)
    if seconds <= 0:
        return ZERO_DURATION

    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def compute_duration(start: Timestamp, end: Timestamp, timezone: str = "Asia/Shanghai") -> str:
    """
    Compute the duration between two feed timestamps.

    Args:
        start: Start timestamp (string or datetime)
        end: End timestamp (string or datetime)
        timezone: IANA timezone for naive values

    Returns:
        Duration as HH:MM:SS, never negative

    Raises:
        MalformedTimestampError: If either timestamp cannot be parsed
    """
    start_dt = parse_timestamp(start, timezone)
    end_dt = parse_timestamp(end, timezone)

    return format_duration((end_dt - start_dt).total_seconds())
