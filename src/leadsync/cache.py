"""
Read-through cache used for lead lookups and AI summaries.

Backend failures never break a request: get() degrades to a miss and
set()/delete() are logged and dropped. Errors raised by the factory passed to
get_or_set() always propagate. Values must be JSON-serialisable so both
backends behave the same.
"""
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


def build_lead_key(lead_id: str) -> str:
    return f"lead:{lead_id}"


def build_summary_key(email: str) -> str:
    return f"ai:summary:{email}"


class MemoryCacheBackend:
    """Process-local dict with per-key expiry."""

    def __init__(self):
        self._data: Dict[str, Tuple[Optional[float], str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int]) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (expires_at, json.dumps(value, default=str))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisCacheBackend:
    def __init__(self, redis: Redis, prefix: str = "leadsync:cache:"):
        self.redis = redis
        self.prefix = prefix

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(self.prefix + key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[int]) -> None:
        await self.redis.set(self.prefix + key, json.dumps(value, default=str), ex=ttl or None)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self.prefix + key)


class CacheService:
    def __init__(self, backend, default_ttl: int = 300):
        self.backend = backend
        self.default_ttl = default_ttl

    async def get(self, key: str) -> Optional[Any]:
        try:
            return await self.backend.get(key)
        except Exception as exc:
            logger.warning("Cache get failed for key %s: %s", key, exc)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            await self.backend.set(key, value, ttl if ttl is not None else self.default_ttl)
            logger.debug("Cached key %s", key)
        except Exception as exc:
            logger.warning("Cache set failed for key %s: %s", key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(key)
            logger.debug("Deleted key %s", key)
        except Exception as exc:
            logger.warning("Cache delete failed for key %s: %s", key, exc)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value, or compute it with ``factory`` and cache it."""
        cached = await self.get(key)
        if cached is not None:
            logger.debug("Cache hit for key %s", key)
            return cached

        logger.debug("Cache miss for key %s", key)
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl)
        return value
