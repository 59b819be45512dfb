"""Time helpers."""

from datetime import datetime, timezone, tzinfo
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def localnow(tz: Optional[tzinfo] = None) -> datetime:
    """Timezone-aware current time in `tz`, or in the host's local zone."""
    if tz is not None:
        return datetime.now(tz)
    return datetime.now().astimezone()
