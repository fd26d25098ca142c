"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Naive UTC timestamps (what Mongo returns)
- Expiry checks and remaining-time calculations
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Current UTC time, naive, truncated to milliseconds.
    BSON datetimes carry millisecond precision.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def expires_in(minutes: int = 0, hours: int = 0, seconds: int = 0) -> datetime:
    """
    Calculates an expiry timestamp from now.
    """
    return utcnow() + timedelta(minutes=minutes, hours=hours, seconds=seconds)


def is_expired(expires_at: Optional[datetime]) -> bool:
    """
    Checks if an expiry timestamp is in the past. Missing values count as expired.
    """
    if not expires_at:
        return True
    return utcnow() > expires_at


def seconds_until(expires_at: datetime) -> int:
    """
    Whole seconds remaining before expires_at (rounded up, never negative).
    """
    remaining = (expires_at - utcnow()).total_seconds()
    if remaining <= 0:
        return 0
    return int(remaining) + (1 if remaining % 1 else 0)

