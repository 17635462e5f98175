from datetime import datetime, timedelta, timezone

import pytest

from task_tracker.filters import FilterSet, StatusFilter, resolve_filters
from task_tracker.models import Task, TaskPriority, TaskStatus
from task_tracker.patch import TaskPatch, merge_task
from task_tracker.repositories.task_repository import TaskRepository
from task_tracker.timeutils import ensure_utc

UTC = timezone.utc
BASE = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_task(title: str, user_id: int = 1, **kwargs) -> Task:
    return Task(user_id=user_id, title=title, **kwargs)


async def save_all(repo: TaskRepository, *tasks: Task) -> list[Task]:
    return [await repo.save(task) for task in tasks]


def titles(tasks: list[Task]) -> list[str]:
    return [t.title for t in tasks]


@pytest.mark.asyncio
async def test_save_assigns_id_and_timestamps(db):
    repo = TaskRepository(db)

    task = await repo.save(make_task("Buy milk"))

    assert task.id is not None
    assert task.status == TaskStatus.NEW
    assert task.priority == TaskPriority.MEDIUM
    assert task.created_at == task.updated_at
    assert task.deleted_at is None


@pytest.mark.asyncio
async def test_find_by_id_hides_soft_deleted(db):
    repo = TaskRepository(db)
    task = await repo.save(make_task("Old chore"))

    assert await repo.soft_delete(task.id) is True

    assert await repo.find_by_id(task.id) is None
    assert await repo.soft_delete(task.id) is False
    assert await repo.find_by_id(9999) is None


@pytest.mark.asyncio
async def test_soft_delete_keeps_row(db):
    repo = TaskRepository(db)
    task = await repo.save(make_task("Keep me around"))

    await repo.soft_delete(task.id)

    stored = await db.get(Task, task.id)
    assert stored is not None
    assert stored.deleted_at is not None


@pytest.mark.asyncio
async def test_filter_is_scoped_to_owner_and_excludes_deleted(db):
    repo = TaskRepository(db)
    mine, _, gone = await save_all(
        repo,
        make_task("Mine"),
        make_task("Someone else's", user_id=2),
        make_task("Deleted"),
    )
    await repo.soft_delete(gone.id)

    result = await repo.find_by_filter(FilterSet(user_id=1))

    assert [t.id for t in result] == [mine.id]


@pytest.mark.asyncio
async def test_filter_by_exact_status_and_not_done(db):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("new", status=TaskStatus.NEW),
        make_task("doing", status=TaskStatus.IN_PROGRESS),
        make_task("done", status=TaskStatus.DONE),
    )

    exact = await repo.find_by_filter(FilterSet(user_id=1, status=StatusFilter.exact("DONE")))
    not_done = await repo.find_by_filter(FilterSet(user_id=1, status=StatusFilter.not_done()))
    unknown = await repo.find_by_filter(FilterSet(user_id=1, status=StatusFilter.exact("bogus")))

    assert titles(exact) == ["done"]
    assert sorted(titles(not_done)) == ["doing", "new"]
    assert unknown == []


@pytest.mark.asyncio
async def test_filter_by_priority(db):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("low", priority=TaskPriority.LOW),
        make_task("high", priority=TaskPriority.HIGH),
    )

    result = await repo.find_by_filter(FilterSet(user_id=1, priority="HIGH"))

    assert titles(result) == ["high"]


@pytest.mark.asyncio
async def test_search_is_case_insensitive_substring(db):
    repo = TaskRepository(db)
    await save_all(repo, make_task("Quarterly REPORT"), make_task("Groceries"))

    result = await repo.find_by_filter(FilterSet(user_id=1, search="report"))

    assert titles(result) == ["Quarterly REPORT"]


@pytest.mark.asyncio
async def test_deadline_bounds_are_inclusive(db):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("before", deadline=BASE - timedelta(days=1)),
        make_task("start", deadline=BASE),
        make_task("end", deadline=BASE + timedelta(days=2)),
        make_task("after", deadline=BASE + timedelta(days=3)),
        make_task("none"),
    )

    result = await repo.find_by_filter(
        FilterSet(user_id=1, deadline_from=BASE, deadline_to=BASE + timedelta(days=2))
    )

    assert titles(result) == ["start", "end"]


@pytest.mark.asyncio
async def test_deadline_bounds_in_other_zones_are_normalized(db):
    repo = TaskRepository(db)
    await save_all(repo, make_task("noon utc", deadline=BASE))
    plus_three = timezone(timedelta(hours=3))

    # 15:00+03:00 is 12:00 UTC
    result = await repo.find_by_filter(
        FilterSet(user_id=1, deadline_from=datetime(2026, 10, 19, 15, 0, tzinfo=plus_three))
    )

    assert titles(result) == ["noon utc"]


@pytest.mark.asyncio
async def test_inverted_bounds_return_nothing(db):
    repo = TaskRepository(db)
    await save_all(repo, make_task("any", deadline=BASE))

    result = await repo.find_by_filter(
        FilterSet(user_id=1, deadline_from=BASE + timedelta(days=1), deadline_to=BASE)
    )

    assert result == []


@pytest.mark.asyncio
async def test_order_is_deadline_asc_nulls_last_then_newest(db):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("no deadline, older"),
        make_task("in two days", deadline=BASE + timedelta(days=2)),
        make_task("tomorrow", deadline=BASE + timedelta(days=1)),
        make_task("no deadline, newer"),
    )

    result = await repo.find_by_filter(FilterSet(user_id=1))

    assert titles(result) == [
        "tomorrow",
        "in two days",
        "no deadline, newer",
        "no deadline, older",
    ]


@pytest.mark.asyncio
async def test_overdue_filter_end_to_end(db):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("late", deadline=BASE - timedelta(hours=1)),
        make_task("late but done", deadline=BASE - timedelta(hours=2), status=TaskStatus.DONE),
        make_task("upcoming", deadline=BASE + timedelta(hours=1)),
        make_task("undated"),
    )

    filters = resolve_filters(1, filter_type="overdue", now=BASE)
    result = await repo.find_by_filter(filters)

    assert titles(result) == ["late"]


@pytest.mark.asyncio
async def test_update_applies_merged_fields_only(db):
    repo = TaskRepository(db)
    task = await repo.save(make_task("Draft", deadline=BASE))
    created_at = task.created_at

    merged = merge_task(task, TaskPatch(title="Final", deadline=0, status="DONE"), now=BASE)
    # a stale id/owner on the merged copy must not leak into the row
    merged.user_id = 99

    updated = await repo.update(task.id, merged)

    assert updated.title == "Final"
    assert updated.deadline is None
    assert updated.status == TaskStatus.DONE
    assert updated.user_id == 1
    assert updated.created_at == created_at
    assert ensure_utc(updated.updated_at) == BASE


@pytest.mark.asyncio
async def test_update_missing_task_returns_none(db):
    repo = TaskRepository(db)

    assert await repo.update(12345, make_task("ghost")) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filters",
    [
        FilterSet(user_id=1, status=StatusFilter.exact("done")),
        FilterSet(user_id=1, status=StatusFilter.exact("FINISHED")),
        FilterSet(user_id=1, priority="low"),
        FilterSet(user_id=1, priority="URGENT", status=StatusFilter.not_done()),
    ],
)
async def test_unknown_enum_tokens_match_nothing(db, filters):
    repo = TaskRepository(db)
    await save_all(
        repo,
        make_task("done", status=TaskStatus.DONE, priority=TaskPriority.LOW),
        make_task("open", priority=TaskPriority.LOW),
    )

    assert await repo.find_by_filter(filters) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("search", ["a_b", "%", "50%"])
async def test_search_treats_like_wildcards_literally(db, search):
    repo = TaskRepository(db)
    await save_all(repo, make_task("axb"), make_task("plain"), make_task("a50xoff"))

    assert await repo.find_by_filter(FilterSet(user_id=1, search=search)) == []


@pytest.mark.asyncio
async def test_search_matches_literal_wildcard_characters(db):
    repo = TaskRepository(db)
    await save_all(repo, make_task("Save 50% on snake_case"), make_task("axb"))

    percent = await repo.find_by_filter(FilterSet(user_id=1, search="50%"))
    underscore = await repo.find_by_filter(FilterSet(user_id=1, search="E_C"))

    assert titles(percent) == ["Save 50% on snake_case"]
    assert titles(underscore) == ["Save 50% on snake_case"]
