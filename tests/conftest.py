"""Shared pytest fixtures: in-memory doubles for Redis and the record store, and an API client."""

import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortener.allocator import IDAllocator
from shortener.cache import ResolutionCache
from shortener.config import Settings, get_settings
from shortener.dependencies import get_allocator, get_record_store, get_resolution_cache
from shortener.errors import DuplicateShortCode, NotFound
from shortener.main import app
from shortener.models import URL

TEST_COUNTER_FLOOR = 100


class FakeRedis:
    """Single-process stand-in for the Redis commands the service issues.

    ``incr`` has no await point, so on one event loop it is as atomic as the
    real command.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def incr(self, key: str) -> int:
        value = int(self.values.get(key, 0)) + 1
        self.values[key] = str(value)
        return value

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.values[key] = str(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def eval(self, script: str, numkeys: int, *keys_and_args) -> int:
        # Mirrors FLOOR_SCRIPT.
        key, floor = keys_and_args[0], int(keys_and_args[1])
        current = self.values.get(key)
        if current is None or int(current) < floor:
            self.values[key] = str(floor - 1)
            return 1
        return 0

    async def aclose(self) -> None:
        self.closed = True


class InMemoryRecordStore:
    """Record store double that enforces code uniqueness and counts calls."""

    def __init__(self) -> None:
        self.records: dict[str, URL] = {}
        self.save_calls = 0
        self.lookup_calls = 0
        self.failure: Exception | None = None
        self._next_id = 1

    async def save(self, original_url: str, short_code: str) -> URL:
        self.save_calls += 1
        if self.failure is not None:
            raise self.failure
        if short_code in self.records:
            raise DuplicateShortCode(short_code)

        now = datetime.datetime.now(datetime.timezone.utc)
        url = URL(
            id=self._next_id,
            original_url=original_url,
            short_code=short_code,
            created_at=now,
            updated_at=now,
        )
        self._next_id += 1
        self.records[short_code] = url
        return url

    async def get_by_short_code(self, short_code: str) -> URL:
        self.lookup_calls += 1
        if self.failure is not None:
            raise self.failure
        try:
            return self.records[short_code]
        except KeyError:
            raise NotFound(f"Short code '{short_code}' not found") from None


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def allocator(fake_redis: FakeRedis, settings: Settings) -> IDAllocator:
    id_allocator = IDAllocator(fake_redis, settings.COUNTER_KEY, TEST_COUNTER_FLOOR)
    await id_allocator.initialize()
    return id_allocator


@pytest.fixture
def resolution_cache(fake_redis: FakeRedis, settings: Settings) -> ResolutionCache:
    return ResolutionCache(fake_redis, settings.CACHE_KEY_PREFIX, settings.CACHE_TTL_SECONDS)


@pytest_asyncio.fixture
async def client(
    allocator: IDAllocator,
    resolution_cache: ResolutionCache,
    record_store: InMemoryRecordStore,
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_allocator] = lambda: allocator
    app.dependency_overrides[get_resolution_cache] = lambda: resolution_cache
    app.dependency_overrides[get_record_store] = lambda: record_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
