"""
Sparse-patch merge for tasks.

Each ``TaskPatch`` field is either ``UNSET`` (leave the stored value alone)
or a value. ``None`` is a value, distinct from ``UNSET``: an explicit null
clears ``description``, while for ``title``, ``status`` and ``priority`` it
is skipped like an empty string. ``deadline`` keeps the wire sentinel ``0``
for "clear".
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from task_tracker.models import Task, TaskPriority, TaskStatus, TaskUpdate, parse_deadline
from task_tracker.timeutils import get_utc_now


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

DEADLINE_CLEAR = 0

# fields merge_task may change; identity, ownership and lifecycle stamps stay put
MUTABLE_FIELDS = frozenset(
    {"title", "description", "status", "priority", "deadline", "updated_at"}
)


@dataclass(frozen=True)
class TaskPatch:
    title: str | None = UNSET
    description: str | None = UNSET
    status: str | None = UNSET
    priority: str | None = UNSET
    deadline: int | None = UNSET

    @classmethod
    def from_update(cls, update: TaskUpdate) -> "TaskPatch":
        """Only fields present in the request body are carried over."""
        provided = {
            name: getattr(update, name)
            for name in update.model_fields_set
            if name in cls.__dataclass_fields__
        }
        return cls(**provided)


def merge_task(existing: Task, patch: TaskPatch, now: datetime | None = None) -> Task:
    """
    Return a new, detached Task with ``patch`` applied over ``existing``.

    Status and priority are validated before anything is computed; an
    invalid token raises ``InvalidEnumValue`` and nothing is merged. An
    out-of-range deadline raises ``InvalidFieldValue``.
    ``existing`` is never mutated.
    """
    changes: dict[str, Any] = {}

    if patch.status is not UNSET and patch.status:
        changes["status"] = TaskStatus.parse(patch.status)
    if patch.priority is not UNSET and patch.priority:
        changes["priority"] = TaskPriority.parse(patch.priority)

    if patch.title is not UNSET and patch.title:
        changes["title"] = patch.title
    if patch.description is not UNSET:
        changes["description"] = patch.description

    # an explicit null deadline is treated as not provided
    if patch.deadline is not UNSET and patch.deadline is not None:
        if patch.deadline == DEADLINE_CLEAR:
            changes["deadline"] = None
        else:
            changes["deadline"] = parse_deadline(patch.deadline)

    changes["updated_at"] = now or get_utc_now()

    merged = existing.model_dump()
    merged.update(changes)
    return Task(**merged)
