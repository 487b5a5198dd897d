"""
View Cache Service.

Caches rendered listing views (inventory lots, backorders, sales) and
invalidates them after stock or sale state changes.

Supports:
1. Redis (preferred for production, shared across workers)
2. In-memory fallback (for development/testing)

Cache keys follow the format:

    {namespace}:views:{view}:{identifier}

Usage:
    cache = get_cache()
    page = await cache.get_view("backorders", params)
    await cache.set_view("backorders", params, page)

    # After a fulfillment
    await cache.invalidate_views("inventory", "sales", "backorders")
"""
import json
import hashlib
from typing import Any, Optional, Dict
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from tradedesk.config import settings

logger = logging.getLogger(__name__)

# Views touched by stock, sale and backorder mutations
STOCK_VIEWS = ("inventory", "sales", "backorders")


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development/fallback.

    Not shared between server processes.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return value
                del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache[key] = (value, expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)


class RedisCache(CacheBackend):
    """Redis cache backend for production."""

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._get_client().get(key)
            if value:
                return json.loads(value)
            return None
        except RedisError as e:
            logger.warning(f"Redis get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            await self._get_client().set(key, json.dumps(value), ex=ttl)
            return True
        except RedisError as e:
            logger.warning(f"Redis set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._get_client().delete(key)
            return True
        except RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        try:
            client = self._get_client()
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = await client.scan(cursor, match=pattern, count=100)
                if keys:
                    await client.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            return deleted
        except RedisError as e:
            logger.warning(f"Redis clear failed for {pattern}: {e}")
            return 0


class CacheService:
    """
    Listing view cache.

    Features:
    - Automatic backend selection (Redis or in-memory)
    - JSON serialization
    - TTL management
    - Whole-view invalidation
    """

    def __init__(self, backend: CacheBackend, namespace: str = "tradedesk", enabled: bool = True):
        self._backend = backend
        self._namespace = namespace
        self._enabled = enabled

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def _view_prefix(self, view: str) -> str:
        return f"{self._namespace}:views:{view}:"

    def view_key(self, view: str, params: Dict[str, Any]) -> str:
        """Stable key for a view rendered with the given query parameters."""
        canonical = json.dumps(params, sort_keys=True, default=str)
        digest = hashlib.md5(canonical.encode()).hexdigest()
        return f"{self._view_prefix(view)}{digest}"

    async def get_view(self, view: str, params: Dict[str, Any]) -> Optional[Any]:
        if not self._enabled:
            return None
        return await self._backend.get(self.view_key(view, params))

    async def set_view(
        self,
        view: str,
        params: Dict[str, Any],
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        if not self._enabled:
            return False
        return await self._backend.set(
            self.view_key(view, params), value, ttl or settings.VIEW_CACHE_TTL
        )

    async def invalidate_views(self, *views: str) -> int:
        """Drop every cached page of the named views."""
        count = 0
        for view in views:
            count += await self._backend.clear_pattern(f"{self._view_prefix(view)}*")
        if count:
            logger.debug(f"Invalidated {count} cached pages of {', '.join(views)}")
        return count

    async def invalidate_stock_views(self) -> int:
        """Invalidate inventory, sales and backorder listings."""
        return await self.invalidate_views(*STOCK_VIEWS)


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend, enabled=settings.CACHE_ENABLED)

    return _cache_instance
