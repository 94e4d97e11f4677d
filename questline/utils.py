import math
from datetime import date, datetime
from typing import Optional
from uuid import uuid4


def make_id(prefix: str = "") -> str:
    """Return a fresh random identifier, optionally prefixed (e.g. "evt_")."""
    if prefix:
        return f"{prefix}{uuid4().hex[:12]}"
    return str(uuid4())


def now_local(now: Optional[datetime] = None) -> datetime:
    """Return `now` (or the current time) as a timezone-aware local datetime."""
    current = now or datetime.now()
    return current if current.tzinfo else current.astimezone()


def now_iso(now: Optional[datetime] = None) -> str:
    return now_local(now).isoformat()


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp.

    A trailing "Z" is accepted. Naive values are read as local time so every
    result is timezone-aware and comparable.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.astimezone()


def day_key(value) -> str:
    """Local calendar date (yyyy-MM-dd) of a timestamp string, datetime or date."""
    if isinstance(value, str):
        value = parse_iso(value)
    if isinstance(value, datetime):
        return now_local(value).astimezone().date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Cannot derive a day from {value!r}")


def round_half_up(value: float) -> int:
    """Round .5 away from zero on the positive side, like the XP tables expect."""
    return int(math.floor(value + 0.5))


def clamp(value, low, high):
    return max(low, min(high, value))
