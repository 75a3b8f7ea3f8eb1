"""Timestamp helpers shared by selection, executions and the watchdog."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to an aware UTC datetime.

    Accepts Firestore timestamps (already datetimes), naive datetimes
    (treated as UTC), ISO-8601 strings and epoch seconds.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_datetime(parsed)
    # Protobuf-style timestamps expose ToDatetime()
    if hasattr(value, "ToDatetime"):
        return to_datetime(value.ToDatetime())
    return None


def days_between(earlier: Optional[datetime], now: datetime) -> float:
    """Whole days elapsed (floor); infinity when there is no earlier timestamp."""
    if earlier is None:
        return math.inf
    return float(math.floor((now - earlier).total_seconds() / SECONDS_PER_DAY))


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
