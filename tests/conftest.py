# tests/conftest.py

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from tasktracker.cache.layer import CacheLayer, MemoryCache, get_cache_layer
from tasktracker.database import get_db
from tasktracker.main import app
from tasktracker.services.task_service import TaskService

from .fakes import FakeTaskStore


@pytest.fixture()
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def memory_backend() -> MemoryCache:
    return MemoryCache(maxsize=256)


@pytest.fixture()
def cache(memory_backend: MemoryCache) -> CacheLayer:
    return CacheLayer(memory_backend, ttl_seconds=600, timeout_seconds=1.0)


@pytest.fixture()
def service(store: FakeTaskStore, cache: CacheLayer) -> TaskService:
    return TaskService(store, cache, store_timeout=1.0)


@pytest.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory, cache: CacheLayer):
    """API client on an in-memory SQLite store and an in-memory cache."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_layer] = lambda: cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
