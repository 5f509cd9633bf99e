# tests/fakes.py

import asyncio
from collections import Counter

from tasktracker.cache.layer import MemoryCache
from tasktracker.core.exceptions import CacheDegradedError, StoreUnavailableError
from tasktracker.models import Task, get_utc_now, next_update_time

READ_CALLS = (
    "get_by_id",
    "get_all",
    "get_by_status_ordered_by_created_at_desc",
    "search_by_title_containing_ignore_case",
    "exists_by_id",
    "count",
)
WRITE_CALLS = ("insert", "update", "delete_by_id")


def _copy(task: Task) -> Task:
    return Task(**task.model_dump())


class FakeTaskStore:
    """
    In-memory TaskStore that counts every call.

    Rows are copied on the way in and out so the service cannot mutate stored
    state without going through ``update``, like a real session-backed store.
    """

    def __init__(self, delay: float = 0.0):
        self.rows: dict[int, Task] = {}
        self.calls: Counter = Counter()
        self.fail = False
        self.delay = delay
        self._next_id = 1

    async def _hit(self, name: str):
        self.calls[name] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise StoreUnavailableError("Task store is unavailable")

    @property
    def reads(self) -> int:
        return sum(self.calls[name] for name in READ_CALLS)

    @property
    def writes(self) -> int:
        return sum(self.calls[name] for name in WRITE_CALLS)

    async def insert(self, task: Task) -> Task:
        await self._hit("insert")
        now = get_utc_now()
        task.id = self._next_id
        self._next_id += 1
        task.created_at = now
        task.updated_at = now
        self.rows[task.id] = _copy(task)
        return _copy(task)

    async def get_by_id(self, task_id: int):
        await self._hit("get_by_id")
        row = self.rows.get(task_id)
        return None if row is None else _copy(row)

    async def get_all(self):
        await self._hit("get_all")
        return [_copy(row) for _, row in sorted(self.rows.items())]

    async def get_by_status_ordered_by_created_at_desc(self, status):
        await self._hit("get_by_status_ordered_by_created_at_desc")
        rows = [row for row in self.rows.values() if row.status == status]
        rows.sort(key=lambda row: (row.created_at, row.id), reverse=True)
        return [_copy(row) for row in rows]

    async def search_by_title_containing_ignore_case(self, fragment: str):
        await self._hit("search_by_title_containing_ignore_case")
        needle = fragment.lower()
        return [
            _copy(row)
            for _, row in sorted(self.rows.items())
            if needle in row.title.lower()
        ]

    async def exists_by_id(self, task_id: int) -> bool:
        await self._hit("exists_by_id")
        return task_id in self.rows

    async def update(self, task: Task) -> Task:
        await self._hit("update")
        task.updated_at = next_update_time(task.updated_at)
        self.rows[task.id] = _copy(task)
        return _copy(task)

    async def delete_by_id(self, task_id: int) -> None:
        await self._hit("delete_by_id")
        self.rows.pop(task_id, None)

    async def count(self) -> int:
        await self._hit("count")
        return len(self.rows)


class FailingCacheBackend:
    """Cache backend whose every call fails, like an unreachable Redis."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args):
        self.calls += 1
        raise CacheDegradedError("connection refused")

    get = set = delete = delete_prefix = ping = _fail

    async def close(self) -> None:
        pass


class SlowCacheBackend(MemoryCache):
    """Memory backend that answers slower than any sane cache timeout."""

    async def get(self, key: str):
        await asyncio.sleep(1)
        return await super().get(key)




class FlakyCacheBackend(MemoryCache):
    """Memory backend that fails while ``failing`` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def get(self, key: str):
        if self.failing:
            raise CacheDegradedError("connection reset")
        return await super().get(key)
