import pytest

from factify.cache import InMemoryResponseCache, RedisResponseCache, make_cache_key
from factify.models import ContentType, PartialResult, ProviderStatus


def ok_result(provider_id="heuristic", score=60.0):
    return PartialResult(provider_id=provider_id, status=ProviderStatus.OK, score=score, confidence=0.5)


def test_cache_key_normalizes_text():
    a = make_cache_key("heuristic", "  Breaking   NEWS ", ContentType.TEXT)
    b = make_cache_key("heuristic", "breaking news", ContentType.TEXT)
    assert a == b
    assert a.startswith("factify:heuristic:")


def test_cache_key_separates_provider_and_type():
    text = make_cache_key("heuristic", "same", ContentType.TEXT)
    assert text != make_cache_key("sentiment", "same", ContentType.TEXT)
    assert text != make_cache_key("heuristic", "same", ContentType.IMAGE)


def test_cache_key_hashes_image_bytes():
    assert make_cache_key("ocr", b"\x89PNG", "image") == make_cache_key("ocr", b"\x89PNG", ContentType.IMAGE)
    assert make_cache_key("ocr", b"\x89PNG", "image") != make_cache_key("ocr", b"\x89PNX", "image")


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(clock):
    cache = InMemoryResponseCache(clock=clock)
    await cache.put("k", ok_result(), ttl=60)

    clock.advance(59)
    assert await cache.get("k") == ok_result()

    clock.advance(1)
    assert await cache.get("k") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_only_ok_results_are_stored(clock):
    cache = InMemoryResponseCache(clock=clock)
    for status in (ProviderStatus.RATE_LIMITED, ProviderStatus.UNAVAILABLE, ProviderStatus.MALFORMED, ProviderStatus.TIMEOUT):
        await cache.put(status.value, PartialResult.failure("p", status))

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_zero_ttl_disables_caching(clock):
    cache = InMemoryResponseCache(clock=clock)
    await cache.put("k", ok_result(), ttl=0)
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_oldest_entries_are_evicted(clock):
    cache = InMemoryResponseCache(max_entries=2, clock=clock)
    await cache.put("a", ok_result(score=1))
    await cache.put("b", ok_result(score=2))
    await cache.put("c", ok_result(score=3))

    assert await cache.get("a") is None
    assert (await cache.get("c")).score == 3
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_expired_entries_are_pruned_on_write(clock):
    cache = InMemoryResponseCache(clock=clock)
    await cache.put("old", ok_result(), ttl=10)
    clock.advance(11)
    await cache.put("new", ok_result(), ttl=10)
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_redis_cache_falls_back_to_memory_without_server():
    cache = RedisResponseCache("redis://localhost:1")
    await cache.connect()

    assert cache.use_redis is False
    await cache.put("k", ok_result())
    assert await cache.get("k") == ok_result()
    await cache.close()


@pytest.mark.asyncio
async def test_redis_cache_writes_through_to_the_given_empty_fallback():
    memory = InMemoryResponseCache()
    cache = RedisResponseCache("redis://localhost:1", fallback=memory)
    await cache.connect()

    await cache.put("k", ok_result())

    assert cache.fallback is memory
    assert len(memory) == 1
    await cache.close()


@pytest.mark.asyncio
async def test_redis_cache_round_trip():
    try:
        import redis.asyncio as redis

        client = redis.from_url("redis://localhost:6379", socket_connect_timeout=1)
        await client.ping()
        await client.close()
    except Exception:
        pytest.skip("Redis not available")

    cache = RedisResponseCache("redis://localhost:6379")
    await cache.connect()
    key = make_cache_key("heuristic", "redis round trip", ContentType.TEXT)
    await cache.put(key, ok_result(score=42), ttl=5)

    assert (await cache.get(key)).score == 42
    await cache.close()
