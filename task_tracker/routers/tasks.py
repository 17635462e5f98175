from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from task_tracker.database import get_db
from task_tracker.dependencies import get_current_user_id
from task_tracker.filters import resolve_filters
from task_tracker.models import TaskCreate, TaskResponse, TaskUpdate
from task_tracker.patch import TaskPatch

from task_tracker.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _not_found(task_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task with id {task_id} not found",
    )


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a new task owned by the caller"""
    return await TaskService.create_task(task_data, user_id, db)


@router.get("/", response_model=list[TaskResponse])
async def get_tasks(
    status_: str | None = Query(default=None, alias="status"),
    search: str | None = None,
    priority: str | None = None,
    # epoch seconds; non-numeric values are ignored
    deadline_from: str | None = None,
    deadline_to: str | None = None,
    filter_type: str | None = Query(default=None, description="today | week | overdue"),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    filters = resolve_filters(
        user_id,
        status=status_,
        search=search,
        priority=priority,
        deadline_from=deadline_from,
        deadline_to=deadline_to,
        filter_type=filter_type,
    )
    return await TaskService.list_tasks(filters, db)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a specific task by ID"""
    task = await TaskService.get_task(task_id, user_id, db)
    if not task:
        raise _not_found(task_id)
    return task


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    patch = TaskPatch.from_update(task_data)
    task = await TaskService.update_task(task_id, user_id, patch, db)
    if not task:
        raise _not_found(task_id)
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a task"""
    result = await TaskService.delete_task(task_id, user_id, db)
    if not result:
        raise _not_found(task_id)
