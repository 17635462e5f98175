import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from task_tracker.cache.decorators import async_cached, async_invalidate
from task_tracker.cache.layer import task_cache
from task_tracker.core.config import get_settings
from task_tracker.core.errors import TaskAccessDenied
from task_tracker.filters import FilterSet
from task_tracker.models import TaskCreate, TaskResponse
from task_tracker.patch import TaskPatch, merge_task
from task_tracker.repositories.task_repository import TaskRepository

logger = logging.getLogger(__name__)

TASK_CACHE_TTL = get_settings().task_cache_ttl_seconds


def task_cache_key(task_id: int) -> str:
    return f"task:{task_id}"


class TaskService:
    @staticmethod
    async def create_task(task_data: TaskCreate, user_id: int, db: AsyncSession) -> TaskResponse:
        task = task_data.to_task(user_id)
        try:
            task = await TaskRepository(db).save(task)
        except SQLAlchemyError as e:
            logger.error(f"TaskService.create_task(TaskRepository.save): {e}")
            raise
        return TaskResponse.model_validate(task)

    @staticmethod
    async def list_tasks(filters: FilterSet, db: AsyncSession) -> list[TaskResponse]:
        try:
            tasks = await TaskRepository(db).find_by_filter(filters)
        except SQLAlchemyError as e:
            logger.error(f"TaskService.list_tasks(TaskRepository.find_by_filter): {e}")
            raise
        return [TaskResponse.model_validate(task) for task in tasks]

    @staticmethod
    @async_cached(lambda task_id, *_, **__: task_cache_key(task_id), ttl=TASK_CACHE_TTL)
    async def _load_task(task_id: int, db: AsyncSession):
        try:
            task = await TaskRepository(db).find_by_id(task_id)
        except SQLAlchemyError as e:
            logger.error(f"TaskService.get_task(TaskRepository.find_by_id): {e}")
            raise
        return TaskResponse.model_validate(task) if task else None

    @staticmethod
    async def get_task(task_id: int, user_id: int, db: AsyncSession) -> TaskResponse | None:
        data = await TaskService._load_task(task_id, db)
        if data is None:
            return None
        task = TaskResponse.model_validate(data)
        if task.user_id != user_id:
            raise TaskAccessDenied(task_id)
        return task

    @staticmethod
    async def update_task(
        task_id: int, user_id: int, patch: TaskPatch, db: AsyncSession
    ) -> TaskResponse | None:
        repo = TaskRepository(db)
        try:
            existing = await repo.find_by_id(task_id)
            if not existing:
                return None
            if existing.user_id != user_id:
                raise TaskAccessDenied(task_id)

            merged = merge_task(existing, patch)
            task = await repo.update(task_id, merged)
        except SQLAlchemyError as e:
            logger.error(f"TaskService.update_task(TaskRepository.update): {e}")
            raise

        if not task:
            return None
        response = TaskResponse.model_validate(task)
        # committed; older loads in flight can no longer land
        await task_cache.replace(
            task_cache_key(task_id), response.model_dump(mode="json"), ttl=TASK_CACHE_TTL
        )
        return response

    @staticmethod
    @async_invalidate(lambda task_id, *_, **__: task_cache_key(task_id))
    async def delete_task(task_id: int, user_id: int, db: AsyncSession) -> bool:
        repo = TaskRepository(db)
        try:
            task = await repo.find_by_id(task_id)
            if not task:
                return False
            if task.user_id != user_id:
                raise TaskAccessDenied(task_id)
            return await repo.soft_delete(task_id)
        except SQLAlchemyError as e:
            logger.error(f"TaskService.delete_task(TaskRepository.soft_delete): {e}")
            raise
