"""
Date/time helpers - framework-agnostic.

MongoDB returns naive datetimes unless the client is tz-aware; everything
here normalises to timezone-aware UTC.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as aware UTC; naive datetimes are assumed to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expires_in(seconds: int, *, now: Optional[datetime] = None) -> datetime:
    """Return the aware UTC datetime *seconds* from *now*."""
    return (now or utcnow()) + timedelta(seconds=seconds)


def seconds_until(moment: Optional[datetime], *, now: Optional[datetime] = None) -> int:
    """Whole seconds (rounded up) from *now* until *moment*; never negative."""
    moment = as_utc(moment)
    if moment is None:
        return 0
    delta = (moment - (now or utcnow())).total_seconds()
    return max(int(math.ceil(delta)), 0)
