"""Redis cache infrastructure with graceful degradation."""

from typing import Any

import orjson
import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger()


async def connect_redis(url: str) -> aioredis.Redis | None:
    """Open a Redis client, or return None when Redis is unreachable."""
    try:
        client = aioredis.from_url(
            url,
            decode_responses=False,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
        )
        await client.ping()
        logger.info("Redis connection established")
        return client
    except Exception as e:
        logger.warning("Redis unavailable, caching disabled", error=str(e))
        return None


class CacheService:
    """Async Redis cache with orjson serialization. No-ops if Redis is unavailable."""

    def __init__(self, client: aioredis.Redis | None):
        self.client = client

    async def get(self, key: str) -> Any | None:
        if not self.client:
            return None
        try:
            data = await self.client.get(key)
            if data:
                return orjson.loads(data)
        except Exception as e:
            logger.warning("Cache get failed", key=key, error=str(e))
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        if not self.client:
            return
        try:
            await self.client.set(key, orjson.dumps(value), ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except Exception:
            return False

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None
