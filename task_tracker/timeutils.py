"""Helpers for UTC timestamps, epoch conversion and the local zone."""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from task_tracker.core.config import get_settings

UTC = timezone.utc


def get_utc_now() -> datetime:
    """Current UTC time with timezone"""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive values (SQLite drops offsets) and convert aware ones."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


def local_timezone() -> tzinfo:
    name = get_settings().timezone
    if name:
        return ZoneInfo(name)
    return datetime.now().astimezone().tzinfo


def local_now() -> datetime:
    return datetime.now(local_timezone())
