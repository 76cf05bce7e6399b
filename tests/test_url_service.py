"""Unit tests for the write and read coordinators.

The coordinators run against in-memory doubles for Redis and the record store
(see ``conftest.py``), so every store and cache interaction can be counted.
"""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from shortener.allocator import IDAllocator
from shortener.cache import ResolutionCache
from shortener.encoder import decode_short_code, encode
from shortener.errors import (
    AllocationFailed,
    AllocatorUnavailable,
    DuplicateShortCode,
    NotFound,
    PersistenceFailed,
    StoreUnavailable,
    ValidationError,
)
from shortener.url_service import ReadCoordinator, WriteCoordinator


@pytest.fixture
def broken_redis() -> AsyncMock:
    client = AsyncMock(spec=redis.Redis)
    client.incr = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.get = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.set = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    return client


@pytest.fixture
def write_coordinator(allocator, record_store, settings) -> WriteCoordinator:
    return WriteCoordinator(allocator, record_store, settings, salt_source=lambda: 42)


@pytest.fixture
def read_coordinator(resolution_cache, record_store) -> ReadCoordinator:
    return ReadCoordinator(resolution_cache, record_store)


# ============================================================================
# WRITE COORDINATOR
# ============================================================================


class TestWriteCoordinator:
    @pytest.mark.asyncio
    async def test_create_short_url_allocates_encodes_and_saves(self, write_coordinator, record_store):
        url = await write_coordinator.create_short_url("https://example.com")

        assert url.short_code == encode(100, 42)
        assert url.original_url == "https://example.com"
        assert url.id == 1
        assert record_store.records[url.short_code] is url

    @pytest.mark.asyncio
    async def test_code_carries_allocated_id_and_salt(self, write_coordinator):
        first = await write_coordinator.create_short_url("https://example.com/a")
        second = await write_coordinator.create_short_url("https://example.com/b")

        assert decode_short_code(first.short_code) == (100, 42)
        assert decode_short_code(second.short_code) == (101, 42)

    @pytest.mark.asyncio
    async def test_salt_is_drawn_per_call_within_range(self, allocator, record_store, settings):
        coordinator = WriteCoordinator(allocator, record_store, settings)

        for index in range(20):
            url = await coordinator.create_short_url(f"https://example.com/{index}")
            allocated_id, salt = decode_short_code(url.short_code)
            assert allocated_id == 100 + index
            assert 0 <= salt < settings.SALT_MULTIPLIER

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_url", ["", "not-a-url", "http://", "example.com"])
    async def test_invalid_url_raises_validation_error(self, write_coordinator, record_store, fake_redis, bad_url):
        counter_before = dict(fake_redis.values)

        with pytest.raises(ValidationError):
            await write_coordinator.create_short_url(bad_url)

        assert record_store.save_calls == 0
        assert fake_redis.values == counter_before

    @pytest.mark.parametrize(
        "good_url",
        ["http://localhost:8000/x", "http://intranet/page", "http://127.0.0.1:8080/", "https://example.com"],
    )
    def test_single_label_and_ip_hosts_are_valid(self, good_url):
        assert WriteCoordinator.validate_url(good_url) == good_url

    @pytest.mark.asyncio
    async def test_allocator_failure_raises_allocation_failed(self, broken_redis, record_store, settings):
        allocator = IDAllocator(broken_redis, settings.COUNTER_KEY, 100)
        coordinator = WriteCoordinator(allocator, record_store, settings)

        with pytest.raises(AllocationFailed) as exc_info:
            await coordinator.create_short_url("https://example.com")

        assert isinstance(exc_info.value.__cause__, AllocatorUnavailable)
        assert record_store.save_calls == 0

    @pytest.mark.asyncio
    async def test_store_failure_raises_persistence_failed(self, write_coordinator, record_store):
        record_store.failure = StoreUnavailable("connection refused")

        with pytest.raises(PersistenceFailed) as exc_info:
            await write_coordinator.create_short_url("https://example.com")

        assert isinstance(exc_info.value.__cause__, StoreUnavailable)

    @pytest.mark.asyncio
    async def test_duplicate_short_code_is_surfaced_without_retry(
        self, allocator, record_store, settings, fake_redis
    ):
        coordinator = WriteCoordinator(allocator, record_store, settings, salt_source=lambda: 0)
        await coordinator.create_short_url("https://example.com/first")
        # Rewind the counter so the next allocation repeats an id.
        fake_redis.values[settings.COUNTER_KEY] = "99"

        with pytest.raises(DuplicateShortCode) as exc_info:
            await coordinator.create_short_url("https://example.com/second")

        assert exc_info.value.short_code == encode(100, 0)
        assert exc_info.value.error_code == "duplicate_short_code"
        assert record_store.save_calls == 2
        assert fake_redis.values[settings.COUNTER_KEY] == "100"

    @pytest.mark.asyncio
    async def test_creation_does_not_populate_cache(self, write_coordinator, resolution_cache):
        url = await write_coordinator.create_short_url("https://example.com")

        assert await resolution_cache.get(url.short_code) is None


# ============================================================================
# READ COORDINATOR
# ============================================================================


class TestReadCoordinator:
    @pytest.mark.asyncio
    async def test_cache_hit_short_circuits_store(self, read_coordinator, resolution_cache, record_store):
        await resolution_cache.set("G8000007", "https://example.com")

        assert await read_coordinator.resolve("G8000007") == "https://example.com"
        assert record_store.lookup_calls == 0

    @pytest.mark.asyncio
    async def test_cache_miss_reads_store_and_populates_cache(
        self, read_coordinator, resolution_cache, record_store, fake_redis
    ):
        await record_store.save("https://example.com", "G8000007")

        assert await read_coordinator.resolve("G8000007") == "https://example.com"
        assert record_store.lookup_calls == 1
        assert await resolution_cache.get("G8000007") == "https://example.com"
        assert fake_redis.ttls["url:G8000007"] == 1800

    @pytest.mark.asyncio
    async def test_second_read_within_ttl_skips_store(self, read_coordinator, record_store):
        await record_store.save("https://example.com", "G8000007")

        await read_coordinator.resolve("G8000007")
        await read_coordinator.resolve("G8000007")
        await read_coordinator.resolve("G8000007")

        assert record_store.lookup_calls == 1

    @pytest.mark.asyncio
    async def test_unknown_code_raises_not_found(self, read_coordinator, resolution_cache, record_store):
        with pytest.raises(NotFound):
            await read_coordinator.resolve("G8000007")
        assert await resolution_cache.get("G8000007") is None
        assert record_store.lookup_calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("short_code", ["does-not-exist", "bad\x00code", "G800/0007", "a" * 17])
    async def test_malformed_code_is_not_found_without_backend_calls(
        self, read_coordinator, record_store, fake_redis, short_code
    ):
        with pytest.raises(NotFound):
            await read_coordinator.resolve(short_code)
        with pytest.raises(NotFound):
            await read_coordinator.describe(short_code)
        assert record_store.lookup_calls == 0
        assert not any(key.startswith("url:") for key in fake_redis.values)

    @pytest.mark.asyncio
    async def test_max_code_length_is_configurable(self, resolution_cache, record_store):
        await record_store.save("https://example.com", "G8000007")
        coordinator = ReadCoordinator(resolution_cache, record_store, max_code_length=7)

        with pytest.raises(NotFound):
            await coordinator.resolve("G8000007")
        assert record_store.lookup_calls == 0

    @pytest.mark.asyncio
    async def test_store_failure_on_miss_raises_store_unavailable(self, read_coordinator, record_store):
        record_store.failure = StoreUnavailable("connection refused")

        with pytest.raises(StoreUnavailable):
            await read_coordinator.resolve("G8000007")

    @pytest.mark.asyncio
    async def test_cache_outage_degrades_to_store_read(self, broken_redis, record_store):
        await record_store.save("https://example.com", "G8000007")
        coordinator = ReadCoordinator(ResolutionCache(broken_redis), record_store)

        assert await coordinator.resolve("G8000007") == "https://example.com"
        assert record_store.lookup_calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("short_code", ["", "   "])
    async def test_empty_code_raises_validation_error(self, read_coordinator, record_store, short_code):
        with pytest.raises(ValidationError):
            await read_coordinator.resolve(short_code)
        with pytest.raises(ValidationError):
            await read_coordinator.describe(short_code)
        assert record_store.lookup_calls == 0

    @pytest.mark.asyncio
    async def test_describe_reads_store_and_refreshes_cache(self, read_coordinator, resolution_cache, record_store):
        saved = await record_store.save("https://example.com", "G8000007")
        await resolution_cache.set("G8000007", "https://stale.example.com")

        url = await read_coordinator.describe("G8000007")

        assert url is saved
        assert record_store.lookup_calls == 1
        assert await resolution_cache.get("G8000007") == "https://example.com"


# ============================================================================
# END TO END (CORE)
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "original_url",
    [
        "https://example.com",
        "http://example.org/a/b/c?x=1&y=two#section",
        "https://sub.domain.example.net:8443/path/to/page",
        "http://localhost:8000/x",
        "http://intranet/page",
    ],
)
async def test_create_then_resolve_round_trip(write_coordinator, read_coordinator, original_url):
    url = await write_coordinator.create_short_url(original_url)

    assert await read_coordinator.resolve(url.short_code) == original_url
