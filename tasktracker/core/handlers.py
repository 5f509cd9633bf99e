import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tasktracker.core.exceptions import TaskTrackerError
from tasktracker.models import ApiResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    body = ApiResponse.error(message, errors).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and validation errors to enveloped JSON responses."""

    @app.exception_handler(TaskTrackerError)
    async def task_tracker_error_handler(request: Request, exc: TaskTrackerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"
        )
