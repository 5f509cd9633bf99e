import asyncio
import logging
import re
import time
from functools import wraps
from typing import Any, Protocol

from cachetools import TLRUCache
from redis.asyncio import Redis, RedisError

from tasktracker.core.config import Settings, get_settings
from tasktracker.core.exceptions import CacheDegradedError

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")
_FAILED = object()


class CacheBackend(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _redis_call(fn):
    """Translate redis client failures into CacheDegradedError."""

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (RedisError, OSError) as e:
            raise CacheDegradedError(f"Redis {fn.__name__} failed: {e}") from e

    return wrapper


class RedisCache:
    """Shared cache backend on Redis; every key is prefixed with ``namespace``."""

    def __init__(self, redis: Redis, namespace: str = ""):
        self._redis = redis
        self.namespace = namespace

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisCache":
        options: dict[str, Any] = {
            "max_connections": settings.redis_pool_size,
            "socket_connect_timeout": 5,
            "socket_keepalive": True,
            "health_check_interval": 30,
        }
        if settings.redis_password:
            options["password"] = settings.redis_password
        redis = Redis.from_url(settings.redis_dsn, **options)
        return cls(redis, namespace=settings.cache_namespace)

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @_redis_call
    async def get(self, key: str) -> bytes | None:
        return await self._redis.get(self._key(key))

    @_redis_call
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        await self._redis.set(self._key(key), value, ex=ttl)

    @_redis_call
    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    @_redis_call
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` using SCAN batches."""
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._key(prefix)) + "*"
        cursor = 0
        deleted_count = 0

        while True:
            cursor, keys = await self._redis.scan(cursor, match=pattern, count=100)
            if keys:
                await self._redis.delete(*keys)
                deleted_count += len(keys)
            if cursor == 0:
                break

        return deleted_count

    @_redis_call
    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        try:
            await self._redis.aclose()
            logger.info("Redis connection closed")
        except (RedisError, OSError) as e:
            logger.error(f"Error closing Redis: {e}")


def _expires_at(key, entry, now):
    return now + entry[1]


class MemoryCache:
    """
    Process-local backend with per-entry TTL.

    Only consistent for a single worker process; use Redis when the API runs
    with more than one worker.
    """

    def __init__(self, maxsize: int = 2048, timer=time.monotonic):
        self._data = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)

    async def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        self._data[key] = (value, ttl)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in list(self._data.keys()) if key.startswith(prefix)]
        for key in keys:
            self._data.pop(key, None)
        return len(keys)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()


class CacheLayer:
    """
    Best-effort front for a cache backend.

    Features:
    - One TTL applied to every write
    - Every backend call bounded by a timeout
    - Backend faults and timeouts are logged and counted, never raised:
      reads degrade to a miss, writes and evictions are dropped
    - No backend (caching disabled) behaves as a permanently empty cache
    - After a fault the layer reports DEGRADED until `recovery_successes`
      calls in a row succeed
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttl_seconds: int = 600,
        timeout_seconds: float | None = 0.5,
        recovery_successes: int = 3,
    ):
        self._backend = backend
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._initialized = backend is not None
        self.recovery_successes = recovery_successes
        self._degraded = False
        self._successes_since_fault = 0

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
        }

    @property
    def enabled(self) -> bool:
        return self._backend is not None

    @property
    def state(self) -> str:
        if self._backend is None:
            return "DISABLED"
        return "DEGRADED" if self._degraded else "UP"

    async def init_cache(self, settings: Settings | None = None):
        """Build the backend from settings and check it is reachable."""
        if self._initialized:
            return

        settings = settings or get_settings()
        self.ttl_seconds = settings.cache_ttl_seconds
        self.timeout_seconds = settings.cache_timeout_seconds
        self.recovery_successes = settings.cache_recovery_successes
        self._initialized = True

        if not settings.cache_enabled:
            logger.info("Caching disabled, all reads go to the task store")
            return

        if settings.cache_backend == "memory":
            self._backend = MemoryCache(maxsize=settings.memory_cache_maxsize)
            logger.info("In-memory cache initialized")
            return

        self._backend = RedisCache.from_settings(settings)
        try:
            await asyncio.wait_for(self._backend.ping(), settings.cache_timeout_seconds)
            logger.info(
                f"Redis connection established (ttl={settings.cache_ttl_seconds}s)"
            )
        except (CacheDegradedError, asyncio.TimeoutError) as e:
            # The client reconnects lazily, so keep it and run degraded until
            # Redis answers again.
            self._degraded = True
            logger.error(f"Redis unreachable at startup, running degraded: {e}")

    async def _call(self, operation: str, key: str, awaitable):
        try:
            result = await asyncio.wait_for(awaitable, self.timeout_seconds)
        except (CacheDegradedError, asyncio.TimeoutError) as e:
            self.stats["errors"] += 1
            self._degraded = True
            self._successes_since_fault = 0
            logger.warning(f"Cache {operation} failed for {key!r}: {e!r}")
            return _FAILED
        if self._degraded:
            self._successes_since_fault += 1
            if self._successes_since_fault >= self.recovery_successes:
                self._degraded = False
                logger.info("Cache recovered")
        return result

    async def get(self, key: str) -> bytes | None:
        """Return the cached bytes, or None on a miss or a cache fault."""
        if self._backend is None:
            self.stats["misses"] += 1
            return None

        raw = await self._call("get", key, self._backend.get(key))
        if raw is _FAILED or raw is None:
            self.stats["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return None

        self.stats["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return raw

    async def set(self, key: str, value: bytes) -> bool:
        if self._backend is None:
            return False
        result = await self._call(
            "set", key, self._backend.set(key, value, self.ttl_seconds)
        )
        return result is not _FAILED

    async def delete(self, key: str) -> bool:
        if self._backend is None:
            return False
        result = await self._call("delete", key, self._backend.delete(key))
        return result is not _FAILED

    async def delete_prefix(self, prefix: str) -> int:
        """Evict every key under ``prefix``; returns the count, 0 on failure."""
        if self._backend is None:
            return 0
        result = await self._call(
            "delete_prefix", f"{prefix}*", self._backend.delete_prefix(prefix)
        )
        if result is _FAILED:
            return 0
        logger.debug(f"Evicted {result} keys under {prefix!r}")
        return result

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._backend is not None:
            await self._backend.close()

    def get_stats(self) -> dict:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "state": self.state,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()


def get_cache_layer() -> CacheLayer:
    return cache_layer
