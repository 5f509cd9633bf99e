from tasktracker.models import TaskStatus

TASK_PREFIX = "task:"
STATUS_PREFIX = "tasksByStatus:"


def task_key(task_id: int) -> str:
    return f"{TASK_PREFIX}{task_id}"


def status_key(status: TaskStatus) -> str:
    return f"{STATUS_PREFIX}{TaskStatus(status).value}"
