import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from tasktracker.cache.layer import CacheLayer, cache_layer, get_cache_layer
from tasktracker.core.config import SettingsDep, get_settings
from tasktracker.core.handlers import register_exception_handlers
from tasktracker.core.logging import setup_logging
from tasktracker.database import create_db_and_tables, engine
from tasktracker.models import ApiResponse
from tasktracker.routers import tasks

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        await create_db_and_tables()
    await cache_layer.init_cache(settings)
    yield
    await cache_layer.close()
    await engine.dispose()


app = FastAPI(
    title="Task Tracker API",
    description="Task management API with PostgreSQL and a Redis cache-aside layer",
    swagger_ui_parameters={"displayRequestDuration": True},
    version=settings.app_version,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include routers
app.include_router(tasks.router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Tracker API",
        "docs": "/docs",
        "version": settings.app_version,
    }


@app.get("/health", response_model=ApiResponse[dict])
async def health_check(
    settings: SettingsDep, cache: CacheLayer = Depends(get_cache_layer)
):
    return ApiResponse.ok(
        {
            "status": "UP",
            "application": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "cache": cache.state,
            "timestamp": int(time.time() * 1000),
        },
        "Application is healthy",
    )
