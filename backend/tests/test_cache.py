"""
Unit tests for the tool result cache (in-process and Redis).
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from bizfinder.core.circuit_breaker import CircuitState
from bizfinder.services.cache.redis_cache import RedisResultCache
from bizfinder.services.cache.result_cache import (
    KEY_PREFIX,
    MemoryResultCache,
    canonicalize,
    make_cache_key,
)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# ----------------------------------------------------------------------------
# Keys
# ----------------------------------------------------------------------------

def test_cache_key_format():
    key = make_cache_key("list_businesses", {"limit": 10})

    assert key.startswith(f"{KEY_PREFIX}list_businesses:")
    assert len(key.rsplit(":", 1)[1]) == 32


def test_cache_key_ignores_key_order():
    key1 = make_cache_key("search_businesses", {"query": "flores", "limit": 5})
    key2 = make_cache_key("search_businesses", {"limit": 5, "query": "flores"})

    assert key1 == key2


def test_cache_key_differs_by_operation_and_params():
    base = make_cache_key("search_businesses", {"query": "flores"})

    assert base != make_cache_key("search_businesses", {"query": "pupusas"})
    assert base != make_cache_key("smart_search", {"query": "flores"})


def test_canonicalize_normalizes_sets_tuples_and_integral_floats():
    assert canonicalize({"b": (1, 2), "a": {3, 1}}) == {"a": [1, 3], "b": [1, 2]}
    assert canonicalize({"limit": 10.0}) == {"limit": 10}
    assert make_cache_key("op", {"limit": 10.0}) == make_cache_key("op", {"limit": 10})


# ----------------------------------------------------------------------------
# In-process cache
# ----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_memory_cache_round_trip():
    cache = MemoryResultCache(ttl_seconds=60, clock=FakeClock())
    result = [{"id": "biz-001", "name": "Moment's Events"}]

    assert await cache.get("list_businesses", {"limit": 10}) is None
    assert await cache.put("list_businesses", {"limit": 10}, result) is True
    assert await cache.get("list_businesses", {"limit": 10}) == result

    stats = await cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


@pytest.mark.asyncio
async def test_memory_cache_ttl_expiry():
    clock = FakeClock()
    cache = MemoryResultCache(ttl_seconds=300, clock=clock)
    await cache.put("explore_categories", {"limit": 30}, {"total_categories": 3})

    clock.now = 299
    assert await cache.get("explore_categories", {"limit": 30}) is not None

    clock.now = 300
    assert await cache.get("explore_categories", {"limit": 30}) is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_returns_copies():
    """Mutating a returned value never changes what the cache holds."""
    cache = MemoryResultCache(clock=FakeClock())
    await cache.put("op", {}, {"items": [1, 2]})

    first = await cache.get("op", {})
    first["items"].append(3)

    assert await cache.get("op", {}) == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_memory_cache_never_stores_none():
    cache = MemoryResultCache(clock=FakeClock())

    assert await cache.put("get_business_details", {"id": "missing"}, None) is False
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_empty_list_is_a_hit():
    cache = MemoryResultCache(clock=FakeClock())
    await cache.put("search_businesses", {"query": "zzz"}, [])

    assert await cache.get("search_businesses", {"query": "zzz"}) == []


@pytest.mark.asyncio
async def test_memory_cache_capacity_evicts_oldest():
    cache = MemoryResultCache(max_entries=2, clock=FakeClock())
    await cache.put("op", {"n": 1}, "one")
    await cache.put("op", {"n": 2}, "two")
    await cache.put("op", {"n": 3}, "three")

    assert await cache.get("op", {"n": 1}) is None
    assert await cache.get("op", {"n": 2}) == "two"
    assert await cache.get("op", {"n": 3}) == "three"


@pytest.mark.asyncio
async def test_memory_cache_sweep_removes_expired():
    clock = FakeClock()
    cache = MemoryResultCache(ttl_seconds=10, clock=clock)
    await cache.put("op", {"n": 1}, "old")
    clock.now = 5
    await cache.put("op", {"n": 2}, "new")

    clock.now = 12
    assert cache.sweep() == 1
    assert len(cache) == 1
    assert await cache.get("op", {"n": 2}) == "new"


@pytest.mark.asyncio
async def test_memory_cache_flush():
    cache = MemoryResultCache(clock=FakeClock())
    await cache.put("op", {"n": 1}, "a")
    await cache.put("op", {"n": 2}, "b")

    assert await cache.flush() == 2
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_sweeper_lifecycle():
    cache = MemoryResultCache(sweep_interval_seconds=0.01)

    await cache.start()
    assert (await cache.stats())["sweeper_running"] is True
    await asyncio.sleep(0.03)
    await cache.stop()

    assert (await cache.stats())["sweeper_running"] is False


# ----------------------------------------------------------------------------
# Redis cache
# ----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_redis_cache_get_set():
    mock_redis = AsyncMock()
    mock_redis.setex = AsyncMock(return_value=True)
    cache = RedisResultCache("redis://test", ttl_seconds=120, client=mock_redis)

    assert await cache.put("list_businesses", {"limit": 10}, [{"id": "biz-001"}]) is True
    key, ttl, payload = mock_redis.setex.call_args.args
    assert key == make_cache_key("list_businesses", {"limit": 10})
    assert ttl == 120

    mock_redis.get = AsyncMock(return_value=payload)
    assert await cache.get("list_businesses", {"limit": 10}) == [{"id": "biz-001"}]


@pytest.mark.asyncio
async def test_redis_cache_error_is_a_miss():
    mock_redis = AsyncMock()
    mock_redis.get = AsyncMock(side_effect=RedisConnectionError("down"))
    cache = RedisResultCache("redis://test", client=mock_redis)

    assert await cache.get("op", {}) is None


@pytest.mark.asyncio
async def test_redis_cache_circuit_breaker_open():
    mock_redis = AsyncMock()
    cache = RedisResultCache("redis://test", client=mock_redis)
    cache.circuit_breaker = MagicMock()
    cache.circuit_breaker.state = CircuitState.OPEN

    assert await cache.get("op", {}) is None
    assert await cache.put("op", {}, "value") is False
    mock_redis.get.assert_not_called()


@pytest.mark.asyncio
async def test_redis_cache_without_client():
    """A cache whose Redis never connected behaves as an always-miss cache."""
    cache = RedisResultCache("redis://test")

    assert await cache.get("op", {}) is None
    assert await cache.put("op", {}, "value") is False
    assert await cache.flush() == 0
    assert (await cache.stats())["connected"] is False


@pytest.mark.asyncio
async def test_redis_cache_never_stores_none():
    mock_redis = AsyncMock()
    cache = RedisResultCache("redis://test", client=mock_redis)

    assert await cache.put("op", {}, None) is False
    mock_redis.setex.assert_not_called()
