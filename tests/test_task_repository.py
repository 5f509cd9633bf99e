# tests/test_task_repository.py

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from tasktracker.core.exceptions import StoreUnavailableError
from tasktracker.models import Task, TaskPriority, TaskStatus
from tasktracker.repositories.task_repository import TaskRepository


def make_task(title: str, status: TaskStatus = TaskStatus.TODO) -> Task:
    return Task(title=title, status=status, priority=TaskPriority.MEDIUM)


@pytest.mark.asyncio
async def test_insert_assigns_id_and_equal_utc_timestamps(db) -> None:
    repo = TaskRepository(db)

    task = await repo.insert(make_task("Learn K8s"))

    assert task.id is not None
    assert task.created_at == task.updated_at
    assert task.created_at.tzinfo is not None
    assert task.created_at.utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_get_by_id_round_trips_aware_datetimes(session_factory) -> None:
    due = datetime(2030, 1, 15, 9, 30, tzinfo=timezone.utc)
    async with session_factory() as session:
        task = make_task("Pay invoices")
        task.due_date = due
        task_id = (await TaskRepository(session).insert(task)).id

    async with session_factory() as session:
        loaded = await TaskRepository(session).get_by_id(task_id)

    assert loaded.title == "Pay invoices"
    assert loaded.due_date == due
    assert loaded.created_at.tzinfo is not None
    assert loaded.status == TaskStatus.TODO


@pytest.mark.asyncio
async def test_get_by_id_missing_returns_none(db) -> None:
    assert await TaskRepository(db).get_by_id(404) is None


@pytest.mark.asyncio
async def test_get_all_in_id_order(db) -> None:
    repo = TaskRepository(db)
    for title in ("First task", "Second task", "Third task"):
        await repo.insert(make_task(title))

    assert [t.title for t in await repo.get_all()] == [
        "First task",
        "Second task",
        "Third task",
    ]


@pytest.mark.asyncio
async def test_get_by_status_newest_first(db) -> None:
    repo = TaskRepository(db)
    older = await repo.insert(make_task("Older task"))
    await repo.insert(make_task("Finished task", TaskStatus.COMPLETED))
    newer = await repo.insert(make_task("Newer task"))

    todo = await repo.get_by_status_ordered_by_created_at_desc(TaskStatus.TODO)

    assert [t.id for t in todo] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_search_is_case_insensitive_substring(db) -> None:
    repo = TaskRepository(db)
    await repo.insert(make_task("Learn K8s"))
    await repo.insert(make_task("k8s upgrade"))
    await repo.insert(make_task("Buy milk"))

    found = await repo.search_by_title_containing_ignore_case("K8S")

    assert [t.title for t in found] == ["Learn K8s", "k8s upgrade"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(db) -> None:
    repo = TaskRepository(db)
    await repo.insert(make_task("Reach 100% coverage"))
    await repo.insert(make_task("Reach 1000 users"))

    found = await repo.search_by_title_containing_ignore_case("100%")

    assert [t.title for t in found] == ["Reach 100% coverage"]


@pytest.mark.asyncio
async def test_exists_and_count(db) -> None:
    repo = TaskRepository(db)
    task = await repo.insert(make_task("Learn K8s"))

    assert await repo.exists_by_id(task.id) is True
    assert await repo.exists_by_id(task.id + 1) is False
    assert await repo.count() == 1


@pytest.mark.asyncio
async def test_update_bumps_updated_at_only(db) -> None:
    repo = TaskRepository(db)
    task = await repo.insert(make_task("Learn K8s"))
    created_at, updated_at = task.created_at, task.updated_at

    task.status = TaskStatus.IN_PROGRESS
    updated = await repo.update(task)

    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.created_at == created_at
    assert updated.updated_at > updated_at


@pytest.mark.asyncio
async def test_delete_by_id(db) -> None:
    repo = TaskRepository(db)
    task = await repo.insert(make_task("Learn K8s"))

    await repo.delete_by_id(task.id)
    await repo.delete_by_id(task.id)

    assert await repo.get_by_id(task.id) is None
    assert await repo.count() == 0


class BrokenSession:
    async def get(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("refused"))


@pytest.mark.asyncio
async def test_connection_failures_become_store_unavailable() -> None:
    repo = TaskRepository(BrokenSession())

    with pytest.raises(StoreUnavailableError):
        await repo.get_by_id(1)


class ExhaustedPoolSession:
    async def get(self, *args, **kwargs):
        raise PoolTimeoutError(
            "QueuePool limit of size 5 overflow 10 reached, connection timed out"
        )


@pytest.mark.asyncio
async def test_pool_timeout_becomes_store_unavailable() -> None:
    repo = TaskRepository(ExhaustedPoolSession())

    with pytest.raises(StoreUnavailableError):
        await repo.get_by_id(1)
