from __future__ import annotations
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .config import get_settings

settings = get_settings()
LOCAL_TZ = ZoneInfo(settings.local_timezone)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Values read back from SQLite come out naive; they are UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_client(dt: datetime) -> datetime:
    # naive input is wall-clock time at the institution
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return as_utc(dt).astimezone(LOCAL_TZ).isoformat()
