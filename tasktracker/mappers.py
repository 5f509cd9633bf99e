"""
Conversions between the client-facing task shape, the ``tasks`` row and the
bytes stored in the cache.

Every function here is pure. Id and timestamps belong to the store and are
never set when going from client input to a row.
"""

from pydantic import TypeAdapter

from tasktracker.models import (
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    Task,
    TaskBase,
    TaskResponse,
)

_task_list = TypeAdapter(list[TaskResponse])


def to_response(task: Task) -> TaskResponse:
    return TaskResponse.model_validate(task)


def to_entity(data: TaskBase) -> Task:
    """Build an unsaved row from client input, filling server defaults."""
    return Task(
        title=data.title,
        description=data.description,
        status=data.status or DEFAULT_STATUS,
        priority=data.priority or DEFAULT_PRIORITY,
        due_date=data.due_date,
    )


def apply_update(task: Task, data: TaskBase) -> Task:
    """
    Overwrite every client-settable field of ``task`` with ``data``.

    This is a replacement, not a patch: an omitted description or due date
    clears the stored one and an omitted status or priority resets it to its
    default.
    """
    task.title = data.title
    task.description = data.description
    task.status = data.status or DEFAULT_STATUS
    task.priority = data.priority or DEFAULT_PRIORITY
    task.due_date = data.due_date
    return task


def dump_task(task: TaskResponse) -> bytes:
    return task.model_dump_json().encode()


def load_task(raw: bytes | str) -> TaskResponse:
    return TaskResponse.model_validate_json(raw)


def dump_task_list(tasks: list[TaskResponse]) -> bytes:
    return _task_list.dump_json(tasks)


def load_task_list(raw: bytes | str) -> list[TaskResponse]:
    return _task_list.validate_json(raw)
