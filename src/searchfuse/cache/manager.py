"""Cache Manager — Redis-backed memoization of search, autocomplete and quick answer responses.

The cache is advisory: reads degrade to a miss and writes to a no-op on any
backend, serialization or pool error. Only the initial connection is fatal.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from searchfuse.config.settings import CacheSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheError(Exception):
    """Base exception for cache errors."""


class CacheConnectionError(CacheError):
    """Raised when the cache backend cannot be reached at startup."""


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class CacheManager:
    """TTL cache with Redis and in-memory backends.

    Values are stored as JSON text in both backends so a cached payload reads
    back identically whichever backend is configured. Redis commands go
    through a bounded ``BlockingConnectionPool``: each command checks a
    connection out and returns it when the command completes, and a caller
    that cannot get a connection within ``pool_timeout`` sees a miss.

    Attributes:
        settings: Cache configuration.
    """

    def __init__(self, settings: CacheSettings, clock: Callable[[], float] = time.monotonic) -> None:
        self.settings = settings
        self._clock = clock
        self._client: Any = None
        self._memory_cache: dict[str, tuple[float | None, str]] = {}

    async def initialize(self) -> None:
        """Connect to the cache backend.

        Raises:
            CacheConnectionError: If the Redis backend is configured but unreachable.
        """
        if self.settings.backend != "redis":
            logger.info("Using in-memory cache backend")
            return

        import redis.asyncio as aioredis

        pool = aioredis.BlockingConnectionPool.from_url(
            self.settings.redis_url,
            max_connections=self.settings.max_connections,
            timeout=self.settings.pool_timeout,
            socket_timeout=self.settings.socket_timeout,
            socket_connect_timeout=self.settings.socket_timeout,
            decode_responses=True,
        )
        client = aioredis.Redis(connection_pool=pool)
        try:
            await client.ping()
        except Exception as e:
            await client.aclose()
            raise CacheConnectionError(f"Cannot connect to Redis at {self.settings.redis_url}: {e}") from e

        self._client = client
        logger.info("Connected to Redis cache at %s", self.settings.redis_url)

    async def shutdown(self) -> None:
        """Close cache connections."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def _use_redis(self) -> bool:
        return self.settings.backend == "redis" and self._client is not None

    async def get(self, key: str, schema: TypeAdapter[T] | None = None) -> T | Any | None:
        """Retrieve a value from cache.

        Args:
            key: Cache key.
            schema: Optional adapter used to validate and build the cached value.

        Returns:
            The cached value, or None on miss, expiry, malformed payload or backend error.
        """
        try:
            raw = await self._get_raw(key)
            if raw is None:
                return None
            if schema is not None:
                return schema.validate_json(raw)
            return json.loads(raw)
        except (ValidationError, ValueError):
            logger.debug("Discarding malformed cache payload for key: %s", key, exc_info=True)
            return None
        except Exception:
            logger.debug("Cache get failed for key: %s", key, exc_info=True)
            return None

    async def _get_raw(self, key: str) -> str | None:
        if self._use_redis:
            return await self._client.get(key)

        entry = self._memory_cache.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._memory_cache.pop(key, None)
            return None
        return raw

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value in cache.

        Args:
            key: Cache key.
            value: JSON-serializable value; pydantic models are dumped in JSON mode.
            ttl: Time-to-live in seconds (None = settings default).

        Returns:
            True if stored, False on any failure.
        """
        ttl = ttl or self.settings.ttl_seconds
        try:
            serialized = json.dumps(value, default=_encode, ensure_ascii=False)
            if self._use_redis:
                await self._client.setex(key, ttl, serialized)
            else:
                now = self._clock()
                self._evict_expired(now)
                self._memory_cache[key] = (now + ttl, serialized)
            return True
        except Exception:
            logger.debug("Cache set failed for key: %s", key, exc_info=True)
            return False

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._memory_cache.items() if expires_at is not None and now >= expires_at]
        for k in expired:
            del self._memory_cache[k]

    async def flush(self) -> None:
        """Clear the whole cache namespace.

        Raises:
            CacheError: If the backend rejects the flush.
        """
        if self._use_redis:
            try:
                await self._client.flushdb()
            except Exception as e:
                raise CacheError(f"Cache flush failed: {e}") from e
        else:
            self._memory_cache.clear()
        logger.info("Cache flushed")
