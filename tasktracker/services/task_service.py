import asyncio
import logging

from pydantic import ValidationError

from tasktracker.cache.keys import STATUS_PREFIX, status_key, task_key
from tasktracker.cache.layer import CacheLayer
from tasktracker.core.exceptions import StoreUnavailableError, TaskNotFoundError
from tasktracker.mappers import (
    apply_update,
    dump_task,
    dump_task_list,
    load_task,
    load_task_list,
    to_entity,
    to_response,
)
from tasktracker.models import TaskBase, TaskResponse, TaskStatus
from tasktracker.repositories.task_repository import TaskStore

logger = logging.getLogger(__name__)


class TaskService:
    """
    Cache-aside orchestration over a task store and a cache.

    Reads of a single task and of a status bucket check the cache first and
    populate it on a miss. Every write commits to the store before touching
    the cache, then refreshes ``task:{id}`` and evicts the whole
    ``tasksByStatus:`` namespace. Cache faults never fail an operation.

    Known limitation: concurrent updates of one task are last-write-wins, and
    the cached copy written last may briefly disagree with the store.
    """

    def __init__(
        self,
        store: TaskStore,
        cache: CacheLayer,
        store_timeout: float | None = None,
    ):
        self.store = store
        self.cache = cache
        self.store_timeout = store_timeout

    async def _store(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, self.store_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Task store call timed out after {self.store_timeout}s")
            raise StoreUnavailableError("Task store timed out") from e

    async def _cached_task(self, key: str) -> TaskResponse | None:
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            return load_task(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def _cached_task_list(self, key: str) -> list[TaskResponse] | None:
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            return load_task_list(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def _invalidate_status_lists(self):
        await self.cache.delete_prefix(STATUS_PREFIX)

    async def get_task(self, task_id: int) -> TaskResponse:
        key = task_key(task_id)
        cached = await self._cached_task(key)
        if cached is not None:
            return cached

        logger.info(f"Fetching task from database with id: {task_id}")
        task = await self._store(self.store.get_by_id(task_id))
        if task is None:
            raise TaskNotFoundError(task_id)

        response = to_response(task)
        await self.cache.set(key, dump_task(response))
        return response

    async def get_all_tasks(self) -> list[TaskResponse]:
        logger.info("Fetching all tasks from database")
        tasks = await self._store(self.store.get_all())
        return [to_response(task) for task in tasks]

    async def get_tasks_by_status(self, status: TaskStatus) -> list[TaskResponse]:
        key = status_key(status)
        cached = await self._cached_task_list(key)
        if cached is not None:
            return cached

        logger.info(f"Fetching tasks by status: {status.value}")
        tasks = await self._store(
            self.store.get_by_status_ordered_by_created_at_desc(status)
        )
        responses = [to_response(task) for task in tasks]
        await self.cache.set(key, dump_task_list(responses))
        return responses

    async def search_tasks_by_title(self, title: str) -> list[TaskResponse]:
        logger.info(f"Searching tasks with title containing: {title}")
        tasks = await self._store(
            self.store.search_by_title_containing_ignore_case(title)
        )
        return [to_response(task) for task in tasks]

    async def create_task(self, task_data: TaskBase) -> TaskResponse:
        logger.info(f"Creating new task: {task_data.title}")
        task = await self._store(self.store.insert(to_entity(task_data)))
        response = to_response(task)
        logger.info(f"Task created successfully with id: {response.id}")

        await self.cache.set(task_key(response.id), dump_task(response))
        await self._invalidate_status_lists()
        return response

    async def update_task(self, task_id: int, task_data: TaskBase) -> TaskResponse:
        logger.info(f"Updating task with id: {task_id}")
        task = await self._store(self.store.get_by_id(task_id))
        if task is None:
            raise TaskNotFoundError(task_id)

        apply_update(task, task_data)
        task = await self._store(self.store.update(task))
        response = to_response(task)
        logger.info(f"Task updated successfully with id: {task_id}")

        await self.cache.set(task_key(task_id), dump_task(response))
        await self._invalidate_status_lists()
        return response

    async def delete_task(self, task_id: int) -> None:
        logger.info(f"Deleting task with id: {task_id}")
        if not await self._store(self.store.exists_by_id(task_id)):
            raise TaskNotFoundError(task_id)

        await self._store(self.store.delete_by_id(task_id))
        logger.info(f"Task deleted successfully with id: {task_id}")

        await self.cache.delete(task_key(task_id))
        await self._invalidate_status_lists()

    async def get_task_count(self) -> int:
        return await self._store(self.store.count())
