"""Ephemeral caches for progress records, rate limits and cooldown markers.

MemoryCache keeps entries in process; RedisCache shares them between
processes. Values must be JSON-serializable for RedisCache.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from loreweave.errors import PersistenceError
from loreweave.storage.base import EphemeralCache

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its expiry (monotonic clock)."""

    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryCache:
    """In-process TTL cache.

    Expired entries are swept on write at most once per ``sweep_interval``
    seconds. Past ``max_entries`` the oldest writes are evicted first.
    """

    def __init__(
        self,
        default_ttl: int | None = 3600,
        max_entries: int = 100_000,
        sweep_interval: float = 1.0,
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = time.monotonic()

    def _expiry(self, ttl: int | None) -> float | None:
        ttl = ttl if ttl is not None else self.default_ttl
        if ttl is None:
            return None
        return time.monotonic() + ttl

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(time.monotonic()):
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, entry: CacheEntry) -> None:
        # Re-insert so dict order stays oldest write first
        self._entries.pop(key, None)
        self._entries[key] = entry

        now = time.monotonic()
        if now - self._last_sweep >= self.sweep_interval:
            self._sweep(now)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        async with self._lock:
            self._store(key, CacheEntry(value=value, expires_at=self._expiry(ttl)))

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None or entry.value != value:
                return False
            del self._entries[key]
            return True

    async def set_if_absent(self, key: str, value: Any, ttl: int | None = None) -> bool:
        async with self._lock:
            if self._live_entry(key) is not None:
                return False
            self._store(key, CacheEntry(value=value, expires_at=self._expiry(ttl)))
            return True

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache:
    """Redis-backed TTL cache shared across processes."""

    def __init__(
        self,
        url: str,
        default_ttl: int | None = 3600,
        prefix: str = "loreweave:",
        client: aioredis.Redis | None = None,
    ) -> None:
        self.url = url
        self.default_ttl = default_ttl
        self.prefix = prefix
        self._client = client

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(self.url, decode_responses=True)
            logger.info(f"Redis cache initialized at {self.url}")
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _ttl(self, ttl: int | None) -> int | None:
        return ttl if ttl is not None else self.default_ttl

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._get_client().get(self._key(key))
        except RedisError as e:
            raise PersistenceError(f"Redis get failed for {key}: {e}") from e
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        try:
            await self._get_client().set(self._key(key), json.dumps(value), ex=self._ttl(ttl))
        except RedisError as e:
            raise PersistenceError(f"Redis set failed for {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._get_client().delete(self._key(key)))
        except RedisError as e:
            raise PersistenceError(f"Redis delete failed for {key}: {e}") from e

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        # Atomic check-and-delete so a lock is only released by its owner
        script = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        try:
            result = await self._get_client().eval(script, 1, self._key(key), json.dumps(value))
        except RedisError as e:
            raise PersistenceError(f"Redis delete_if_equals failed for {key}: {e}") from e
        return result == 1

    async def set_if_absent(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            result = await self._get_client().set(
                self._key(key), json.dumps(value), ex=self._ttl(ttl), nx=True
            )
        except RedisError as e:
            raise PersistenceError(f"Redis set_if_absent failed for {key}: {e}") from e
        return bool(result)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_cache(redis_url: str | None, default_ttl: int | None = 3600) -> EphemeralCache:
    """Redis cache when a URL is configured, otherwise in-process."""
    if redis_url:
        return RedisCache(redis_url, default_ttl=default_ttl)
    logger.info("No Redis URL configured, using in-process cache")
    return MemoryCache(default_ttl=default_ttl)
