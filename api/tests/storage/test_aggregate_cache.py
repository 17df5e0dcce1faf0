"""AggregateCache tests against an in-memory stand-in for redis.asyncio."""
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from grylin.core.redis import FOLDERS_NS, LIFESTACKS_NS, UPCOMING_NS, AggregateCache


class DownRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise RedisConnectionError("connection refused")

    async def scan_iter(self, match="*"):
        raise RedisConnectionError("connection refused")
        yield  # pragma: no cover


class TestAggregateCache:
    @pytest.mark.asyncio
    async def test_set_then_get(self, fake_redis):
        cache = AggregateCache(fake_redis, ttl_seconds=300)
        await cache.set("folders:u1", [{"name": "Passport", "item_count": 1}])
        assert await cache.get("folders:u1") == [{"name": "Passport", "item_count": 1}]
        assert fake_redis.ttls["folders:u1"] == 300

    @pytest.mark.asyncio
    async def test_miss(self, fake_redis):
        assert await AggregateCache(fake_redis).get("upcoming:nobody") is None

    @pytest.mark.asyncio
    async def test_document_write_invalidates_all_listings(self, fake_redis):
        cache = AggregateCache(fake_redis)
        for ns in (FOLDERS_NS, LIFESTACKS_NS, UPCOMING_NS):
            await cache.set(f"{ns}u1", [])
        await cache.set("rt_blacklist:abc", "1")

        await cache.invalidate_for("document")
        assert list(fake_redis.data) == ["rt_blacklist:abc"]

    @pytest.mark.asyncio
    async def test_folder_write_keeps_other_namespaces(self, fake_redis):
        cache = AggregateCache(fake_redis)
        await cache.set(f"{FOLDERS_NS}u1", [])
        await cache.set(f"{UPCOMING_NS}u1", [])

        await cache.invalidate_for("folder")
        assert list(fake_redis.data) == [f"{UPCOMING_NS}u1"]

    @pytest.mark.asyncio
    async def test_outage_degrades_to_miss(self):
        cache = AggregateCache(DownRedis())
        assert await cache.get("folders:u1") is None
        await cache.set("folders:u1", [])
        assert await cache.invalidate_prefix(FOLDERS_NS) == 0
