"""Response caching for the model router."""

from model_router.cache.storage import (
    CacheStats,
    CacheStorage,
    InMemoryCacheStorage,
    RedisCacheStorage,
)
from model_router.config import RouterSettings


def create_cache_storage(settings: RouterSettings) -> CacheStorage:
    """Use Redis when a URL is configured, memory otherwise."""
    if settings.redis_url:
        return RedisCacheStorage.from_url(settings.redis_url)
    return InMemoryCacheStorage()


__all__ = [
    "CacheStats",
    "CacheStorage",
    "InMemoryCacheStorage",
    "RedisCacheStorage",
    "create_cache_storage",
]
