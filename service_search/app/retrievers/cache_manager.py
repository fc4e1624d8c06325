"""Response caches for search results.

Two backends share one async contract (``get``/``set``/``delete``/``clear``,
plus ``get_value``/``set_value`` for plain JSON values such as suggestion
lists):

- ``ResponseCache``: in-process mapping with lazy expiry. Entries are only
  removed when read after expiry or on explicit invalidation; there is no
  size bound.
- ``RedisResponseCache``: same contract on Redis ``SETEX`` keys. Redis errors
  are logged and behave like a miss.
"""

import hashlib
import json
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

import redis.asyncio as redis
import structlog

from ..models import SearchQuery, SearchResponse

logger = structlog.get_logger("search_service.cache")

KEY_PREFIX = "search:"
DEFAULT_TTL = 300


def build_suggestion_key(text: str, limit: int) -> str:
    return f"{KEY_PREFIX}suggest:{hashlib.md5(f'{text}:{limit}'.encode()).hexdigest()}"


def build_cache_key(query: SearchQuery) -> str:
    """Stable key for a query: raw text plus canonical type/filters/paging/mode."""
    data = {
        "query": query.query,
        "type": query.type.value,
        "filters": query.filters.canonical(),
        "page": query.page,
        "limit": query.limit,
        "mode": query.mode.value,
    }
    serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return f"{KEY_PREFIX}{hashlib.md5(serialized.encode()).hexdigest()}"


class CacheEntry(NamedTuple):
    value: Any
    expires_at: float


class ResponseCache:
    """In-memory response cache with per-entry TTL."""

    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    async def get_value(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug("Expired cache entry evicted", key=key)
            return None
        return entry.value

    async def set_value(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def get(self, key: str) -> Optional[SearchResponse]:
        return await self.get_value(key)

    async def set(self, key: str, response: SearchResponse, ttl: int = DEFAULT_TTL) -> None:
        await self.set_value(key, response, ttl)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared", cache_type=self.backend, keys_deleted=count)

    def __len__(self) -> int:
        return len(self._entries)

    async def close(self) -> None:
        return None


class RedisResponseCache:
    """Redis-backed response cache."""

    backend = "redis"

    def __init__(self, redis_client: "redis.Redis"):
        self.redis_client = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisResponseCache":
        return cls(redis.from_url(redis_url))

    async def get(self, key: str) -> Optional[SearchResponse]:
        try:
            cached = await self.redis_client.get(key)
            if cached is None:
                return None
            return SearchResponse.model_validate_json(cached)
        except Exception as e:
            logger.warning("Failed to get cached search response", key=key, error=str(e))
            return None

    async def set(self, key: str, response: SearchResponse, ttl: int = DEFAULT_TTL) -> None:
        try:
            await self.redis_client.setex(key, ttl, response.model_dump_json())
        except Exception as e:
            logger.warning("Failed to cache search response", key=key, error=str(e))

    async def get_value(self, key: str) -> Any:
        try:
            cached = await self.redis_client.get(key)
            if cached is None:
                return None
            return json.loads(cached)
        except Exception as e:
            logger.warning("Failed to get cached value", key=key, error=str(e))
            return None

    async def set_value(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        try:
            await self.redis_client.setex(key, ttl, json.dumps(value))
        except Exception as e:
            logger.warning("Failed to cache value", key=key, error=str(e))

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis_client.delete(key))
        except Exception as e:
            logger.warning("Failed to delete cached search response", key=key, error=str(e))
            return False

    async def clear(self) -> None:
        """Delete every key under the search prefix."""
        try:
            total_deleted = 0
            keys = [key async for key in self.redis_client.scan_iter(match=f"{KEY_PREFIX}*")]
            if keys:
                total_deleted = await self.redis_client.delete(*keys)
            logger.info("Cache cleared", cache_type=self.backend, keys_deleted=total_deleted)
        except Exception as e:
            logger.error("Failed to clear cache", cache_type=self.backend, error=str(e))

    async def close(self) -> None:
        try:
            await self.redis_client.aclose()
            logger.info("Search cache closed")
        except Exception as e:
            logger.warning("Failed to close cache", error=str(e))


def create_response_cache(backend: str = "memory", redis_url: Optional[str] = None):
    """Create the configured response cache backend."""
    if backend == "memory":
        return ResponseCache()
    if backend == "redis":
        if not redis_url:
            raise ValueError("Redis response cache requires a redis_url")
        return RedisResponseCache.from_url(redis_url)
    raise ValueError(f"Unknown cache backend: {backend}")
