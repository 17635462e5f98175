from datetime import datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

from task_tracker.core.errors import InvalidEnumValue, InvalidFieldValue
from task_tracker.timeutils import ensure_utc, from_epoch, get_utc_now


def parse_deadline(seconds: int) -> datetime:
    """Epoch seconds from a payload to an aware UTC datetime."""
    try:
        return from_epoch(seconds)
    except (OverflowError, OSError, ValueError):
        raise InvalidFieldValue("deadline", seconds) from None


class TaskStatus(str, Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    @classmethod
    def parse(cls, raw: str) -> "TaskStatus":
        try:
            return cls(raw)
        except ValueError:
            raise InvalidEnumValue("status", raw) from None


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def parse(cls, raw: str) -> "TaskPriority":
        try:
            return cls(raw)
        except ValueError:
            raise InvalidEnumValue("priority", raw) from None


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=200, index=True)
    description: str | None = Field(default=None)


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    status: TaskStatus = Field(default=TaskStatus.NEW)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    deadline: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True),
    )
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    deleted_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    priority: str | None = None
    # epoch seconds; 0 means no deadline
    deadline: int | None = None

    def to_task(self, user_id: int) -> Task:
        priority = TaskPriority.MEDIUM
        if self.priority:
            priority = TaskPriority.parse(self.priority)

        deadline = None
        if self.deadline:
            deadline = parse_deadline(self.deadline)

        return Task(
            user_id=user_id,
            title=self.title,
            description=self.description,
            status=TaskStatus.NEW,
            priority=priority,
            deadline=deadline,
        )


class TaskUpdate(SQLModel):
    """Schema for updating a task - all fields optional.

    Enum fields stay plain strings here so the merger can report which
    field carried an invalid token.
    """

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    deadline: int | None = None


class TaskResponse(TaskBase):
    """Schema for task responses"""

    id: int
    user_id: int
    status: TaskStatus
    priority: TaskPriority
    deadline: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("deadline", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)
