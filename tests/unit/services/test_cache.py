"""Unit tests for Redis cache service."""

import pytest

from restock_service.infrastructure.redis import CacheService

from tests.fakes import FakeRedis


class TestCacheServiceGracefulDegradation:
    """CacheService should no-op safely when Redis is unavailable."""

    @pytest.fixture
    def cache(self) -> CacheService:
        return CacheService(None)

    @pytest.mark.asyncio
    async def test_get_returns_none(self, cache: CacheService) -> None:
        assert await cache.get("any-key") is None

    @pytest.mark.asyncio
    async def test_set_is_noop(self, cache: CacheService) -> None:
        await cache.set("key", {"data": "value"})  # should not raise

    @pytest.mark.asyncio
    async def test_health_check_returns_false(self, cache: CacheService) -> None:
        assert await cache.health_check() is False


class TestCacheServiceWithClient:
    @pytest.mark.asyncio
    async def test_values_round_trip_through_orjson(self) -> None:
        redis = FakeRedis()
        cache = CacheService(redis)

        await cache.set("variant:shop1:v1", {"product_id": "p1", "inventory_item_id": "i1"})

        assert redis.store["variant:shop1:v1"] == b'{"product_id":"p1","inventory_item_id":"i1"}'
        assert await cache.get("variant:shop1:v1") == {"product_id": "p1", "inventory_item_id": "i1"}

    @pytest.mark.asyncio
    async def test_corrupt_entry_reads_as_miss(self) -> None:
        redis = FakeRedis()
        redis.store["broken"] = b"{not json"

        assert await CacheService(redis).get("broken") is None

    @pytest.mark.asyncio
    async def test_close_drops_client(self) -> None:
        cache = CacheService(FakeRedis())
        await cache.close()
        assert cache.client is None
