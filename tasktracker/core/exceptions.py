from fastapi import status


class TaskTrackerError(Exception):
    """Base class for errors the API layer maps to a response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaskNotFoundError(TaskTrackerError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, task_id: int):
        super().__init__(f"Task not found with id: {task_id}")
        self.task_id = task_id


class StoreUnavailableError(TaskTrackerError):
    """The task store could not be reached or did not answer in time."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class CacheDegradedError(Exception):
    """
    Raised by cache backends when the cache cannot serve a call.

    Never surfaced to API callers: the cache layer logs it and the operation
    continues against the store.
    """
