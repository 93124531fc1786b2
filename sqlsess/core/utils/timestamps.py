"""
Last-updated marker timestamps.

Markers are stored as text in a fixed-width RFC 3339 form with nanosecond
precision, always in UTC, e.g. ``2024-05-01T12:30:00.123456789Z``. The fixed
width keeps the text sortable. Parsing also accepts shorter fractions and
numeric offsets so markers written by other producers stay readable.
"""

import re
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlsess.core.exceptions import TimestampParseError

NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"(Z|z|[+-]\d{2}:\d{2})$"
)


def utc_now_ns() -> int:
    return time.time_ns()


def format_timestamp(ns: Optional[int] = None) -> str:
    """
    Format nanoseconds since the epoch as a marker string.

    Args:
        ns: Nanoseconds since the unix epoch, defaults to now

    Returns:
        UTC timestamp text with exactly nine fractional digits
    """
    if ns is None:
        ns = utc_now_ns()
    seconds, nanos = divmod(ns, NANOS_PER_SECOND)
    dt = _EPOCH + timedelta(seconds=seconds)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{nanos:09d}Z"


def parse_timestamp(text: str) -> int:
    """
    Parse a marker string into nanoseconds since the epoch.

    Raises:
        TimestampParseError: If the text is not an RFC 3339 timestamp
    """
    match = _RFC3339.match(text.strip()) if isinstance(text, str) else None
    if match is None:
        raise TimestampParseError(f"not an RFC 3339 timestamp: {text!r}")

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    try:
        if offset in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = 1 if offset[0] == "+" else -1
            tz = timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6])))
        dt = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            tzinfo=tz,
        )
    except ValueError as e:
        raise TimestampParseError(f"invalid timestamp {text!r}: {e}") from e

    seconds = (dt - _EPOCH) // timedelta(seconds=1)
    nanos = int((fraction or "").ljust(9, "0"))
    return seconds * NANOS_PER_SECOND + nanos


def to_nanoseconds(delta: timedelta) -> int:
    return (delta // timedelta(microseconds=1)) * 1000
