"""Unit tests for the ephemeral caches."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from loreweave.errors import PersistenceError
from loreweave.storage.cache import MemoryCache, RedisCache, create_cache


class TestMemoryCache:
    """Tests for the in-process TTL cache."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, memory_cache) -> None:
        await memory_cache.set("progress", {"status": "running"})
        assert await memory_cache.get("progress") == {"status": "running"}

        assert await memory_cache.delete("progress") is True
        assert await memory_cache.delete("progress") is False
        assert await memory_cache.get("progress") is None

    @pytest.mark.asyncio
    async def test_expiry(self, memory_cache, monkeypatch) -> None:
        now = [1000.0]
        monkeypatch.setattr("loreweave.storage.cache.time", MagicMock(monotonic=lambda: now[0]))

        await memory_cache.set("lock", "held", ttl=10)
        now[0] += 9
        assert await memory_cache.get("lock") == "held"
        now[0] += 2
        assert await memory_cache.get("lock") is None

    @pytest.mark.asyncio
    async def test_no_ttl(self) -> None:
        cache = MemoryCache(default_ttl=None)
        await cache.set("weights", [1, 2])
        assert cache._entries["weights"].expires_at is None

    @pytest.mark.asyncio
    async def test_set_if_absent(self, memory_cache) -> None:
        assert await memory_cache.set_if_absent("lock", "a") is True
        assert await memory_cache.set_if_absent("lock", "b") is False
        assert await memory_cache.get("lock") == "a"

    @pytest.mark.asyncio
    async def test_set_if_absent_after_expiry(self, memory_cache, monkeypatch) -> None:
        now = [0.0]
        monkeypatch.setattr("loreweave.storage.cache.time", MagicMock(monotonic=lambda: now[0]))

        await memory_cache.set_if_absent("lock", "a", ttl=5)
        now[0] = 6.0
        assert await memory_cache.set_if_absent("lock", "b") is True

    @pytest.mark.asyncio
    async def test_expired_entries_swept_on_write(self, monkeypatch) -> None:
        now = [1000.0]
        monkeypatch.setattr("loreweave.storage.cache.time", MagicMock(monotonic=lambda: now[0]))
        cache = MemoryCache(default_ttl=1)

        for i in range(1000):
            await cache.set(f"features:old:{i}", 0.5)
        now[0] += 10
        for i in range(1000):
            await cache.set(f"features:new:{i}", 0.5)

        assert len(cache) == 1000
        assert await cache.get("features:new:0") == 0.5

    @pytest.mark.asyncio
    async def test_max_entries_evicts_oldest(self) -> None:
        cache = MemoryCache(default_ttl=None, max_entries=3)
        for key in ("a", "b", "c"):
            await cache.set(key, key)
        await cache.set("a", "a2")
        await cache.set("d", "d")

        assert len(cache) == 3
        assert await cache.get("b") is None
        assert await cache.get("a") == "a2"

    @pytest.mark.asyncio
    async def test_delete_if_equals(self, memory_cache) -> None:
        await memory_cache.set("lock", "job-1")

        assert await memory_cache.delete_if_equals("lock", "job-2") is False
        assert await memory_cache.get("lock") == "job-1"
        assert await memory_cache.delete_if_equals("lock", "job-1") is True
        assert await memory_cache.get("lock") is None

    @pytest.mark.asyncio
    async def test_clear(self, memory_cache) -> None:
        await memory_cache.set("a", 1)
        await memory_cache.set("b", 2)
        await memory_cache.clear()
        assert len(memory_cache) == 0


class TestRedisCache:
    """Tests for the Redis cache with a mocked client."""

    @pytest.fixture
    def redis_client(self) -> MagicMock:
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        client.aclose = AsyncMock()
        return client

    @pytest.fixture
    def cache(self, redis_client) -> RedisCache:
        return RedisCache("redis://localhost:6379/0", default_ttl=60, client=redis_client)

    @pytest.mark.asyncio
    async def test_set_serializes_with_ttl(self, cache, redis_client) -> None:
        await cache.set("progress:g", {"status": "queued"})

        redis_client.set.assert_awaited_once_with(
            "loreweave:progress:g", json.dumps({"status": "queued"}), ex=60
        )

    @pytest.mark.asyncio
    async def test_get_deserializes(self, cache, redis_client) -> None:
        redis_client.get = AsyncMock(return_value='{"status": "running"}')
        assert await cache.get("progress:g") == {"status": "running"}
        redis_client.get.assert_awaited_once_with("loreweave:progress:g")

    @pytest.mark.asyncio
    async def test_set_if_absent_uses_nx(self, cache, redis_client) -> None:
        redis_client.set = AsyncMock(return_value=None)

        assert await cache.set_if_absent("lock:g", "x", ttl=30) is False
        redis_client.set.assert_awaited_once_with("loreweave:lock:g", '"x"', ex=30, nx=True)

    @pytest.mark.asyncio
    async def test_delete(self, cache, redis_client) -> None:
        assert await cache.delete("lock:g") is True
        redis_client.delete = AsyncMock(return_value=0)
        assert await cache.delete("lock:g") is False

    @pytest.mark.asyncio
    async def test_delete_if_equals_checks_owner(self, cache, redis_client) -> None:
        redis_client.eval = AsyncMock(return_value=0)

        assert await cache.delete_if_equals("lock:g", "job-1") is False
        args = redis_client.eval.await_args.args
        assert args[1:] == (1, "loreweave:lock:g", '"job-1"')

        redis_client.eval = AsyncMock(return_value=1)
        assert await cache.delete_if_equals("lock:g", "job-1") is True

    @pytest.mark.asyncio
    async def test_errors_wrapped(self, cache, redis_client) -> None:
        redis_client.get = AsyncMock(side_effect=RedisError("connection refused"))
        with pytest.raises(PersistenceError):
            await cache.get("progress:g")

    @pytest.mark.asyncio
    async def test_close(self, cache, redis_client) -> None:
        await cache.close()
        redis_client.aclose.assert_awaited_once()


class TestCreateCache:
    def test_memory_without_url(self) -> None:
        assert isinstance(create_cache(None), MemoryCache)

    def test_redis_with_url(self) -> None:
        cache = create_cache("redis://localhost:6379/0", default_ttl=120)
        assert isinstance(cache, RedisCache)
        assert cache.default_ttl == 120
