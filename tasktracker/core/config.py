from functools import lru_cache
from typing import Literal

from fastapi import Depends
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Annotated


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "tasktracker-api"
    app_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./tasks.db"
    database_echo: bool = False
    create_tables_on_startup: bool = False
    store_timeout_seconds: float = 5.0

    cache_enabled: bool = True
    cache_backend: Literal["redis", "memory"] = "redis"
    redis_dsn: str = "redis://localhost:6379/0"
    redis_password: str | None = None
    redis_pool_size: int = 5
    cache_ttl_seconds: int = 600  # applied to every cache write
    cache_timeout_seconds: float = 0.5
    cache_recovery_successes: int = 3
    cache_namespace: str = "tasktracker:"
    memory_cache_maxsize: int = 2048


@lru_cache
def get_settings() -> Settings:
    return Settings()


SettingsDep = Annotated[Settings, Depends(get_settings)]
