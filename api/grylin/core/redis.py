import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from grylin.core.config import settings

logger = logging.getLogger(__name__)

# Shared async Redis client (created once at import time, reused across requests)
_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    return _redis


_BLACKLIST_PREFIX = "rt_blacklist:"


async def blacklist_token(jti: str, ttl_seconds: int) -> None:
    """Add a refresh token JTI to the blacklist for its remaining lifetime."""
    if ttl_seconds > 0:
        await get_redis().setex(f"{_BLACKLIST_PREFIX}{jti}", ttl_seconds, "1")


async def is_blacklisted(jti: str) -> bool:
    """Return True if this JTI has been revoked."""
    return await get_redis().exists(f"{_BLACKLIST_PREFIX}{jti}") == 1


# ─── Aggregate read cache ──────────────────────────────────────────────────────

# Namespaces for cached aggregate queries.  Keys look like "folders:{user_id}".
FOLDERS_NS = "folders:"
LIFESTACKS_NS = "lifestacks:"
UPCOMING_NS = "upcoming:"

# A write to an entity type invalidates every namespace whose values derive from it
INVALIDATES: dict[str, tuple[str, ...]] = {
    "document": (FOLDERS_NS, LIFESTACKS_NS, UPCOMING_NS),
    "folder": (FOLDERS_NS,),
    "life_stack": (LIFESTACKS_NS,),
}


class AggregateCache:
    """
    Write-through JSON cache with a fixed TTL for folder/stack/upcoming listings.

    Values are stored as JSON strings.  A cache outage degrades to a miss,
    never to an error in the caller.
    """

    def __init__(self, client: aioredis.Redis, ttl_seconds: int | None = None):
        self._client = client
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._client.setex(key, self._ttl, json.dumps(value))
        except RedisError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns the number removed."""
        removed = 0
        try:
            async for key in self._client.scan_iter(match=f"{prefix}*"):
                removed += await self._client.delete(key)
        except RedisError as exc:
            logger.warning("Cache invalidation failed for %s*: %s", prefix, exc)
        return removed

    async def invalidate_for(self, entity: str) -> None:
        for prefix in INVALIDATES.get(entity, ()):
            await self.invalidate_prefix(prefix)


def get_cache() -> AggregateCache:
    return AggregateCache(get_redis())
