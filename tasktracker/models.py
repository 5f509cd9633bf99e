from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field as PydanticField, field_validator
from sqlalchemy import DateTime, Enum as SAEnum, String
from sqlalchemy.types import TypeDecorator
from sqlmodel import Column, Field, SQLModel

T = TypeVar("T")


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_update_time(previous: datetime | None) -> datetime:
    """Current UTC time, strictly later than ``previous``."""
    now = get_utc_now()
    previous = as_utc(previous)
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


class UTCDateTime(TypeDecorator):
    """DateTime column that always hands back aware UTC datetimes.

    SQLite drops the offset on the way in, so values read back are naive.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


DEFAULT_STATUS = TaskStatus.TODO
DEFAULT_PRIORITY = TaskPriority.MEDIUM

# Largest id the INTEGER primary key can hold
MAX_TASK_ID = 2**31 - 1


class TaskBase(SQLModel):
    """Fields a client may set"""

    title: str = Field(min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        return value


class Task(SQLModel, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column(String(200), nullable=False))
    description: str | None = Field(
        default=None, sa_column=Column(String(1000), nullable=True)
    )
    status: TaskStatus = Field(
        default=DEFAULT_STATUS,
        sa_column=Column(
            SAEnum(TaskStatus, native_enum=False, length=20),
            nullable=False,
            index=True,
        ),
    )
    priority: TaskPriority = Field(
        default=DEFAULT_PRIORITY,
        sa_column=Column(
            SAEnum(TaskPriority, native_enum=False, length=20), nullable=False
        ),
    )
    created_at: datetime | None = Field(
        default=None, sa_column=Column(UTCDateTime(), nullable=False, index=True)
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(UTCDateTime(), nullable=False)
    )
    due_date: datetime | None = Field(
        default=None, sa_column=Column(UTCDateTime(), nullable=True)
    )


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    pass


class TaskUpdate(TaskBase):
    """Schema for replacing a task - every field is overwritten"""

    pass


class TaskResponse(SQLModel):
    """Schema for task responses, also the cached representation"""

    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    created_at: datetime
    updated_at: datetime
    due_date: datetime | None = None

    model_config = {"from_attributes": True}


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope"""

    success: bool
    message: str
    data: T | None = None
    errors: list[Any] | None = None
    timestamp: datetime = PydanticField(default_factory=get_utc_now)

    @classmethod
    def ok(cls, data: Any, message: str) -> "ApiResponse":
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, errors: list[Any] | None = None) -> "ApiResponse":
        return cls(success=False, message=message, errors=errors)
