"""Timestamp canonicalization.

Platforms encode times four different ways:

- ``[seconds, nanos]`` pairs (Gemini batch payloads)
- Unix milliseconds (13 digits)
- Unix seconds (10 digits, possibly fractional)
- ISO 8601 strings

Everything is converted to integer epoch milliseconds. The converters never
guess: unparseable input yields ``None`` and callers choose the fallback.
"""

import math
import re
import time
from datetime import datetime, timedelta, timezone

# Plausible range for the seconds half of a [seconds, nanos] pair (2001-5138)
PAIR_MIN_SECONDS = 1e9
PAIR_MAX_SECONDS = 1e11

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

TIMESTAMP_FIELDS = (
    "timestamp",
    "createTime",
    "create_time",
    "created_at",
    "createdAt",
    "time",
    "ct",
)


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_number(value: object) -> bool:
    """True for finite ints and floats, excluding booleans."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _parse_iso(value: str) -> int | None:
    text = value.strip()
    if not ISO_DATE_RE.match(text):
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return (dt - EPOCH) // timedelta(milliseconds=1)
    except (ValueError, OverflowError):
        return None


def to_epoch_millis(value: object) -> int | None:
    """Convert a timestamp in any known encoding to epoch milliseconds.

    Args:
        value: A [seconds, nanos] pair, a millisecond or second number,
            or an ISO 8601 string

    Returns:
        Epoch milliseconds, or None if the value is not a recognizable timestamp
    """
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            return None
        seconds, nanos = value
        if not is_number(seconds) or not is_number(nanos):
            return None
        if seconds < PAIR_MIN_SECONDS or seconds > PAIR_MAX_SECONDS:
            return None
        return int(seconds * 1000) + int(nanos // 1_000_000)

    if is_number(value):
        if value > 1e12:
            return int(value)
        if value > 1e9:
            return int(round(value * 1000))
        return None

    if isinstance(value, str):
        return _parse_iso(value)

    return None


def to_epoch_millis_or(value: object, fallback: int) -> int:
    """Like to_epoch_millis, but return fallback when the value is unusable."""
    result = to_epoch_millis(value)
    return fallback if result is None else result


def read_timestamp_from_object(obj: dict) -> int | None:
    """Read the first usable timestamp from the common field names of an object."""
    for name in TIMESTAMP_FIELDS:
        ts = to_epoch_millis(obj.get(name))
        if ts is not None:
            return ts
    return None


def find_max_timestamp_in_array(values: list) -> int | None:
    """Return the largest timestamp found among the direct elements of a list."""
    found = None
    for item in values:
        ts = to_epoch_millis(item)
        if not ts:
            continue
        found = ts if found is None else max(found, ts)
    return found
