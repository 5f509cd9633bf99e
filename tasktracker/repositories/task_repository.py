import logging
from functools import wraps
from typing import Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tasktracker.core.exceptions import StoreUnavailableError
from tasktracker.models import Task, TaskStatus, get_utc_now, next_update_time

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    """Durable, authoritative storage for tasks."""

    async def insert(self, task: Task) -> Task: ...

    async def get_by_id(self, task_id: int) -> Task | None: ...

    async def get_all(self) -> Sequence[Task]: ...

    async def get_by_status_ordered_by_created_at_desc(
        self, status: TaskStatus
    ) -> Sequence[Task]: ...

    async def search_by_title_containing_ignore_case(
        self, fragment: str
    ) -> Sequence[Task]: ...

    async def exists_by_id(self, task_id: int) -> bool: ...

    async def update(self, task: Task) -> Task: ...

    async def delete_by_id(self, task_id: int) -> None: ...

    async def count(self) -> int: ...


def store_call(fn):
    """Translate database connectivity failures into StoreUnavailableError."""

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (
            OperationalError,
            InterfaceError,
            DisconnectionError,
            PoolTimeoutError,
            OSError,
        ) as e:
            logger.error(f"Task store {fn.__name__} failed: {e}")
            raise StoreUnavailableError("Task store is unavailable") from e

    return wrapper


class TaskRepository:
    """TaskStore backed by a SQLModel async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @store_call
    async def insert(self, task: Task) -> Task:
        now = get_utc_now()
        task.created_at = now
        task.updated_at = now
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    @store_call
    async def get_by_id(self, task_id: int) -> Task | None:
        return await self.db.get(Task, task_id)

    @store_call
    async def get_all(self) -> Sequence[Task]:
        result = await self.db.exec(select(Task).order_by(col(Task.id)))
        return result.all()

    @store_call
    async def get_by_status_ordered_by_created_at_desc(
        self, status: TaskStatus
    ) -> Sequence[Task]:
        query = (
            select(Task)
            .where(Task.status == status)
            .order_by(col(Task.created_at).desc(), col(Task.id).desc())
        )
        result = await self.db.exec(query)
        return result.all()

    @store_call
    async def search_by_title_containing_ignore_case(
        self, fragment: str
    ) -> Sequence[Task]:
        query = (
            select(Task)
            .where(col(Task.title).icontains(fragment, autoescape=True))
            .order_by(col(Task.id))
        )
        result = await self.db.exec(query)
        return result.all()

    @store_call
    async def exists_by_id(self, task_id: int) -> bool:
        result = await self.db.exec(select(Task.id).where(Task.id == task_id))
        return result.first() is not None

    @store_call
    async def update(self, task: Task) -> Task:
        task.updated_at = next_update_time(task.updated_at)
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    @store_call
    async def delete_by_id(self, task_id: int) -> None:
        task = await self.db.get(Task, task_id)
        if task is None:
            return
        await self.db.delete(task)
        await self.db.commit()

    @store_call
    async def count(self) -> int:
        result = await self.db.exec(select(func.count()).select_from(Task))
        return result.one()
