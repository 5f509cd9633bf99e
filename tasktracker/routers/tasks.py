from fastapi import APIRouter, Depends, Path, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from tasktracker.cache.layer import CacheLayer, get_cache_layer
from tasktracker.core.config import SettingsDep
from tasktracker.database import get_db
from tasktracker.models import (
    MAX_TASK_ID,
    ApiResponse,
    TaskCreate,
    TaskResponse,
    TaskStatus,
    TaskUpdate,
)
from tasktracker.repositories.task_repository import TaskRepository
from tasktracker.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


async def get_task_service(
    settings: SettingsDep,
    db: AsyncSession = Depends(get_db),
    cache: CacheLayer = Depends(get_cache_layer),
) -> TaskService:
    return TaskService(
        TaskRepository(db), cache, store_timeout=settings.store_timeout_seconds
    )


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]

TaskId = Annotated[int, Path(ge=1, le=MAX_TASK_ID)]


@router.get("", response_model=ApiResponse[list[TaskResponse]])
async def get_tasks(service: TaskServiceDep):
    """List every task"""
    tasks = await service.get_all_tasks()
    return ApiResponse.ok(tasks, "Tasks retrieved successfully")


# Static paths are declared before /{task_id} so they are not parsed as ids


@router.get("/count", response_model=ApiResponse[int])
async def get_task_count(service: TaskServiceDep):
    count = await service.get_task_count()
    return ApiResponse.ok(count, "Task count retrieved")


@router.get("/search", response_model=ApiResponse[list[TaskResponse]])
async def search_tasks(service: TaskServiceDep, title: str = Query(min_length=1)):
    """Case-insensitive search on the task title"""
    tasks = await service.search_tasks_by_title(title)
    return ApiResponse.ok(tasks, "Search results")


@router.get("/status/{task_status}", response_model=ApiResponse[list[TaskResponse]])
async def get_tasks_by_status(task_status: TaskStatus, service: TaskServiceDep):
    """Tasks in one status, newest first"""
    tasks = await service.get_tasks_by_status(task_status)
    return ApiResponse.ok(tasks, "Tasks retrieved by status")


@router.get("/{task_id}", response_model=ApiResponse[TaskResponse])
async def get_task(task_id: TaskId, service: TaskServiceDep):
    """Get a specific task by ID"""
    task = await service.get_task(task_id)
    return ApiResponse.ok(task, "Task retrieved successfully")


@router.post(
    "",
    response_model=ApiResponse[TaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_task(task_data: TaskCreate, service: TaskServiceDep):
    """Create a new task"""
    task = await service.create_task(task_data)
    return ApiResponse.ok(task, "Task created successfully")


@router.put("/{task_id}", response_model=ApiResponse[TaskResponse])
async def update_task(
    task_id: TaskId, task_data: TaskUpdate, service: TaskServiceDep
):
    """Replace every client-settable field of a task"""
    task = await service.update_task(task_id, task_data)
    return ApiResponse.ok(task, "Task updated successfully")


@router.delete("/{task_id}", response_model=ApiResponse[None])
async def delete_task(task_id: TaskId, service: TaskServiceDep):
    """Delete a task"""
    await service.delete_task(task_id)
    return ApiResponse.ok(None, "Task deleted successfully")
