"""
Task list filter resolution.

Turns raw, partially-specified list query parameters into a normalized
``FilterSet``. Named windows ("today", "week", "overdue") are resolved into
concrete deadline bounds relative to ``now``, and the virtual status token
``NOT_DONE`` becomes a ``StatusFilter`` variant instead of leaking into
``TaskStatus``.

Resolution is pure: no I/O, never raises. Malformed epoch values are treated
as absent.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from task_tracker.timeutils import from_epoch, local_now, local_timezone

NOT_DONE_TOKEN = "NOT_DONE"

FILTER_TODAY = "today"
FILTER_WEEK = "week"
FILTER_OVERDUE = "overdue"


class StatusFilterKind(str, Enum):
    UNSET = "unset"
    EXACT = "exact"
    NOT_DONE = "not_done"


@dataclass(frozen=True)
class StatusFilter:
    kind: StatusFilterKind = StatusFilterKind.UNSET
    value: str | None = None

    @classmethod
    def unset(cls) -> "StatusFilter":
        return cls()

    @classmethod
    def exact(cls, value: str) -> "StatusFilter":
        return cls(StatusFilterKind.EXACT, value)

    @classmethod
    def not_done(cls) -> "StatusFilter":
        return cls(StatusFilterKind.NOT_DONE)

    @classmethod
    def from_token(cls, token: str | None) -> "StatusFilter":
        if not token:
            return cls.unset()
        if token == NOT_DONE_TOKEN:
            return cls.not_done()
        return cls.exact(token)

    @property
    def is_set(self) -> bool:
        return self.kind is not StatusFilterKind.UNSET


@dataclass(frozen=True)
class FilterSet:
    user_id: int
    status: StatusFilter = field(default_factory=StatusFilter.unset)
    priority: str | None = None
    search: str | None = None
    deadline_from: datetime | None = None
    deadline_to: datetime | None = None
    filter_type: str | None = None


def parse_epoch(raw: str | int | None) -> datetime | None:
    """Epoch seconds to an aware UTC datetime; 0, negatives and junk are absent."""
    if raw is None:
        return None
    try:
        seconds = int(raw)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    try:
        return from_epoch(seconds)
    except (OverflowError, OSError, ValueError):
        return None


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def today_window(now: datetime) -> tuple[datetime, datetime]:
    start = start_of_day(now)
    # 24h of elapsed time, not wall clock
    end = (start.astimezone(timezone.utc) + timedelta(hours=24)).astimezone(start.tzinfo)
    return start, end


def week_window(now: datetime) -> tuple[datetime, datetime]:
    monday = start_of_day(now - timedelta(days=now.weekday()))
    return monday, monday + timedelta(days=7)


def resolve_filters(
    user_id: int,
    *,
    status: str | None = None,
    search: str | None = None,
    priority: str | None = None,
    deadline_from: str | int | None = None,
    deadline_to: str | int | None = None,
    filter_type: str | None = None,
    now: datetime | None = None,
) -> FilterSet:
    """
    Build a FilterSet from raw list query parameters.

    A recognized ``filter_type`` overwrites any explicit deadline bounds:

    - today: [local midnight, local midnight + 24h)
    - week: [Monday 00:00 local, next Monday 00:00 local)
    - overdue: no lower bound, upper bound ``now``; status defaults to NOT_DONE

    Unrecognized ``filter_type`` values leave the bounds untouched. Bound
    ordering is not validated.
    """
    status_filter = StatusFilter.from_token(status)
    lower = parse_epoch(deadline_from)
    upper = parse_epoch(deadline_to)

    if filter_type:
        if now is None:
            now = local_now()
        elif now.tzinfo is None:
            # naive values are wall-clock time in the configured zone
            now = now.replace(tzinfo=local_timezone())

        if filter_type == FILTER_TODAY:
            lower, upper = today_window(now)
        elif filter_type == FILTER_WEEK:
            lower, upper = week_window(now)
        elif filter_type == FILTER_OVERDUE:
            lower, upper = None, now
            if not status_filter.is_set:
                status_filter = StatusFilter.not_done()

    return FilterSet(
        user_id=user_id,
        status=status_filter,
        priority=priority or None,
        search=search or None,
        deadline_from=lower,
        deadline_to=upper,
        filter_type=filter_type or None,
    )
