"""Key-value cache backends.

Values are JSON-compatible dicts stored with an optional TTL. The
in-memory backend suits development and single-instance deployments;
the Redis backend lets several router instances share responses.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import redis.asyncio as redis

from shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached entry with metadata."""

    key: str
    value: dict[str, Any]
    created_at: float
    expires_at: float | None = None
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return now > self.expires_at


@dataclass
class CacheStats:
    """Statistics about cache usage."""

    size: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class CacheStorage(ABC):
    """Abstract base class for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Get a cached value.

        Args:
            key: Cache key.

        Returns:
            The value if present and not expired, None otherwise.
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: dict[str, Any],
        ttl: float | None = None,
    ) -> None:
        """Store a value.

        Args:
            key: Cache key.
            value: JSON-compatible value.
            ttl: Time-to-live in seconds. None keeps it until evicted.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value.

        Returns:
            True if a value was deleted.
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Clear all cache entries."""
        ...

    @abstractmethod
    async def get_stats(self) -> CacheStats:
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None


class InMemoryCacheStorage(CacheStorage):
    """In-memory cache storage.

    Suitable for development and single-instance deployments.
    """

    def __init__(
        self,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize in-memory cache.

        Args:
            max_size: Maximum number of entries.
            clock: Source of the current time.
        """
        self._max_size = max_size
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

        # Stats
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the least used ones, until there is room."""
        for key in [k for k, e in self._cache.items() if e.is_expired(now)]:
            del self._cache[key]
            self._evictions += 1

        while self._cache and len(self._cache) >= self._max_size:
            lru_key = min(
                self._cache.keys(),
                key=lambda k: (self._cache[k].hit_count, self._cache[k].created_at),
            )
            del self._cache[lru_key]
            self._evictions += 1

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._lock:
            entry = self._cache.get(key)

            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._misses += 1
                return None

            entry.hit_count += 1
            self._hits += 1
            return entry.value

    async def set(
        self,
        key: str,
        value: dict[str, Any],
        ttl: float | None = None,
    ) -> None:
        async with self._lock:
            now = self._clock()
            if key not in self._cache:
                self._evict(now)

            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl if ttl else None,
            )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    async def get_stats(self) -> CacheStats:
        async with self._lock:
            return CacheStats(
                size=len(self._cache),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )


class RedisCacheStorage(CacheStorage):
    """Redis-backed cache storage.

    Values are stored as JSON strings under a key prefix, with Redis
    handling expiry.
    """

    def __init__(self, client: redis.Redis, prefix: str = "model-router:") -> None:
        """Initialize Redis cache.

        Args:
            client: Async Redis client created with ``decode_responses=True``.
            prefix: Namespace prepended to every key.
        """
        self._client = client
        self._prefix = prefix
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_url(cls, url: str, prefix: str = "model-router:") -> "RedisCacheStorage":
        """Create a storage connected to a Redis URL."""
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = await self._client.get(self._key(key))
        if raw is None:
            self._misses += 1
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            await self._client.delete(self._key(key))
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(
        self,
        key: str,
        value: dict[str, Any],
        ttl: float | None = None,
    ) -> None:
        payload = json.dumps(value, default=str)
        if ttl:
            await self._client.set(self._key(key), payload, ex=max(1, int(ttl)))
        else:
            await self._client.set(self._key(key), payload)

    async def delete(self, key: str) -> bool:
        return bool(await self._client.delete(self._key(key)))

    async def clear(self) -> None:
        keys = [k async for k in self._client.scan_iter(match=f"{self._prefix}*")]
        if keys:
            await self._client.delete(*keys)
        self._hits = 0
        self._misses = 0

    async def get_stats(self) -> CacheStats:
        size = 0
        async for _ in self._client.scan_iter(match=f"{self._prefix}*"):
            size += 1
        return CacheStats(size=size, hits=self._hits, misses=self._misses, evictions=0)

    async def close(self) -> None:
        await self._client.aclose()
