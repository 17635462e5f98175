from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from task_tracker.filters import FilterSet, StatusFilterKind
from task_tracker.models import Task, TaskPriority, TaskStatus
from task_tracker.patch import MUTABLE_FIELDS
from task_tracker.timeutils import ensure_utc, get_utc_now


def _is_member(enum_cls, token: str) -> bool:
    return token in {member.value for member in enum_cls}


class TaskRepository:
    """Persistence for tasks. Soft-deleted rows are invisible to every read."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, task: Task) -> Task:
        now = get_utc_now()
        task.created_at = now
        task.updated_at = now
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def find_by_id(self, task_id: int) -> Task | None:
        query = select(Task).where(Task.id == task_id, col(Task.deleted_at).is_(None))
        result = await self.db.exec(query)
        return result.first()

    async def find_by_filter(self, filters: FilterSet) -> list[Task]:
        # unknown tokens match nothing; native enum columns would reject them
        if filters.status.kind is StatusFilterKind.EXACT and not _is_member(
            TaskStatus, filters.status.value
        ):
            return []
        if filters.priority and not _is_member(TaskPriority, filters.priority):
            return []

        query = select(Task).where(
            Task.user_id == filters.user_id, col(Task.deleted_at).is_(None)
        )

        if filters.status.kind is StatusFilterKind.NOT_DONE:
            query = query.where(Task.status != TaskStatus.DONE)
        elif filters.status.kind is StatusFilterKind.EXACT:
            query = query.where(Task.status == TaskStatus(filters.status.value))

        if filters.priority:
            query = query.where(Task.priority == TaskPriority(filters.priority))

        # bounds are inclusive; stored deadlines are UTC
        if filters.deadline_from is not None:
            query = query.where(col(Task.deadline) >= ensure_utc(filters.deadline_from))
        if filters.deadline_to is not None:
            query = query.where(col(Task.deadline) <= ensure_utc(filters.deadline_to))

        if filters.search:
            query = query.where(col(Task.title).icontains(filters.search, autoescape=True))

        query = query.order_by(
            col(Task.deadline).asc().nulls_last(), col(Task.created_at).desc()
        )

        result = await self.db.exec(query)
        return list(result.all())

    async def update(self, task_id: int, merged: Task) -> Task | None:
        task = await self.find_by_id(task_id)
        if not task:
            return None
        task.sqlmodel_update(merged.model_dump(include=set(MUTABLE_FIELDS)))
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def soft_delete(self, task_id: int) -> bool:
        task = await self.find_by_id(task_id)
        if not task:
            return False
        task.deleted_at = get_utc_now()
        self.db.add(task)
        await self.db.commit()
        return True
