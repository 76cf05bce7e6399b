"""Write and read coordinators: the core of the short-code service.

Architecture Overview
=====================
::
    ┌──────────────────────────┐        ┌──────────────────────────┐
    │     WriteCoordinator     │        │     ReadCoordinator      │
    │  validate → allocate →   │        │  cache → store → cache   │
    │  encode → save           │        │  (cache-aside)           │
    └───────┬──────────┬───────┘        └──────┬────────────┬──────┘
            │          │                       │            │
            ▼          ▼                       ▼            ▼
    ┌────────────┐ ┌────────────┐      ┌────────────┐ ┌────────────┐
    │ IDAllocator│ │ RecordStore│◀─────│ RecordStore│ │ Resolution │
    │ (Redis)    │ │ (Postgres) │      │ (Postgres) │ │ Cache      │
    └────────────┘ └────────────┘      └────────────┘ └────────────┘

The two coordinators never talk to each other. They share only the counter,
the record store and the cache, so each can be deployed and scaled on its own.

URL Creation Flow
-----------------
::
    validate syntax ──✗──▶ ValidationError (400)
          │
          ▼
    allocator.next_id() ──✗──▶ AllocationFailed (500)
          │
          ▼
    encode(id, salt)          salt drawn per call from [0, 1000)
          │
          ▼
    store.save(url, code) ──✗──▶ PersistenceFailed (500) / DuplicateShortCode (500), no retry
          │
          ▼
    return record             cache is NOT populated here

URL Resolution Flow
-------------------
::
    cache.get(code) ──HIT──▶ return url (store not consulted)
          │ MISS / cache down
          ▼
    store.get_by_short_code(code) ──✗──▶ NotFound (404) / StoreUnavailable (500)
          │
          ▼
    cache.set(code, url, ttl)  best effort
          │
          ▼
    return url
"""

import logging
import random
import time
from collections.abc import Callable

import validators
from prometheus_client import Counter, Histogram

from shortener.allocator import IDAllocator
from shortener.cache import ResolutionCache
from shortener.config import Settings
from shortener.encoder import MAX_CODE_LENGTH, encode, is_well_formed
from shortener.enums import CacheStatus, RequestStatus
from shortener.errors import (
    AllocationFailed,
    AllocatorUnavailable,
    CacheUnavailable,
    DuplicateShortCode,
    NotFound,
    PersistenceFailed,
    StoreUnavailable,
    ValidationError,
)
from shortener.models import URL
from shortener.store import RecordStore

__all__ = ["WriteCoordinator", "ReadCoordinator"]

_default_logger = logging.getLogger("urlshortener")


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "url_shortener_creation_requests_total",
    "Total URL creation requests",
    ["status"],
)
URL_LOOKUP_REQUESTS_TOTAL = Counter(
    "url_shortener_lookup_requests_total",
    "Total URL lookup requests",
    ["status", "cache_hit"],
)
URL_CREATION_DURATION = Histogram(
    "url_shortener_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
URL_LOOKUP_DURATION = Histogram(
    "url_shortener_lookup_duration_seconds",
    "Time taken to lookup URLs",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
IDS_ALLOCATED_TOTAL = Counter(
    "url_shortener_ids_allocated_total",
    "Counter values issued to this replica",
)
CACHE_HITS_TOTAL = Counter(
    "url_shortener_cache_hits_total",
    "Total cache hits for URL lookups",
)
CACHE_MISSES_TOTAL = Counter(
    "url_shortener_cache_misses_total",
    "Total cache misses for URL lookups",
)
CACHE_READ_FAILURES_TOTAL = Counter(
    "url_shortener_cache_read_failures_total",
    "Cache lookups that failed and fell through to the record store",
)
DATABASE_READS_TOTAL = Counter(
    "url_shortener_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "url_shortener_database_writes_total",
    "Total database write operations",
)


def _require_short_code(short_code: str | None) -> str:
    if not short_code or not short_code.strip():
        raise ValidationError("short code is required")
    return short_code


# ============================================================================
# WRITE COORDINATOR
# ============================================================================


class WriteCoordinator:
    """Creates short codes: allocate → encode → persist.

    Args:
        allocator: Shared-counter allocator.
        store: Record store bound to the request's session.
        settings: Encoding parameters (salt multiplier, minimum code length).
        salt_source: Returns a salt in ``[0, SALT_MULTIPLIER)``; random by default.
        logger: Logger or request-scoped adapter.

    Example:
        >>> coordinator = WriteCoordinator(allocator, RecordStore(db), settings)
        >>> url = await coordinator.create_short_url("https://example.com")
        >>> url.short_code  # id 56800235584, salt 999
        'G80000G7'
    """

    def __init__(
        self,
        allocator: IDAllocator,
        store: RecordStore,
        settings: Settings,
        salt_source: Callable[[], int] | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._allocator = allocator
        self._store = store
        self._settings = settings
        self._salt_source = salt_source or self._random_salt
        self._logger = logger or _default_logger

    def _random_salt(self) -> int:
        return random.randrange(self._settings.SALT_MULTIPLIER)

    @staticmethod
    def validate_url(original_url: str | None) -> str:
        """Syntax check only; the target is never contacted."""
        if not isinstance(original_url, str) or not original_url:
            raise ValidationError("originalUrl is required")
        if not validators.url(original_url, simple_host=True):
            raise ValidationError("invalid url")
        return original_url

    async def create_short_url(self, original_url: str) -> URL:
        """Create and persist a record for ``original_url``.

        Returns:
            URL: The persisted record, with store-assigned ``id`` and timestamps.

        Raises:
            ValidationError: If ``original_url`` is not a syntactically valid URL.
            AllocationFailed: If the counter store is unavailable.
            PersistenceFailed: If the record store is unavailable.
            DuplicateShortCode: If the code is already taken. Never retried.
        """
        start_time = time.perf_counter()
        try:
            self.validate_url(original_url)

            try:
                allocated_id = await self._allocator.next_id()
            except AllocatorUnavailable as exc:
                raise AllocationFailed("failed to generate short URL") from exc
            IDS_ALLOCATED_TOTAL.inc()

            salt = self._salt_source()
            short_code = encode(
                allocated_id,
                salt,
                multiplier=self._settings.SALT_MULTIPLIER,
                min_length=self._settings.SHORT_CODE_MIN_LENGTH,
            )

            try:
                url = await self._store.save(original_url, short_code)
            except StoreUnavailable as exc:
                raise PersistenceFailed("failed to save URL") from exc
            DATABASE_WRITES_TOTAL.inc()

        except ValidationError as exc:
            URL_CREATION_DURATION.observe(time.perf_counter() - start_time)
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"URL creation rejected: {exc}")
            raise

        except (AllocationFailed, PersistenceFailed, DuplicateShortCode) as exc:
            URL_CREATION_DURATION.observe(time.perf_counter() - start_time)
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"URL creation failed: {exc}" + (f": {exc.__cause__}" if exc.__cause__ else ""))
            raise

        duration = time.perf_counter() - start_time
        URL_CREATION_DURATION.observe(duration)
        URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(
            f"auto-incremental ID: {allocated_id} for URL: {original_url} "
            f"shortCode: {short_code}, saved with DB ID: {url.id} in {duration:.3f}s"
        )
        return url


# ============================================================================
# READ COORDINATOR
# ============================================================================


class ReadCoordinator:
    """Resolves short codes with a cache-aside lookup.

    A cache hit answers immediately; the record store is only queried on a miss
    or when the cache is unreachable, and every successful store read writes the
    URL back into the cache.
    """

    def __init__(
        self,
        cache: ResolutionCache,
        store: RecordStore,
        max_code_length: int = MAX_CODE_LENGTH,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._cache = cache
        self._store = store
        self._max_code_length = max_code_length
        self._logger = logger or _default_logger

    async def resolve(self, short_code: str) -> str:
        """Return the original URL for ``short_code``.

        Raises:
            ValidationError: If ``short_code`` is empty.
            NotFound: If the code has no record or could never have been issued.
            StoreUnavailable: If the cache missed and the store is unreachable.
        """
        start_time = time.perf_counter()
        self._check_short_code(short_code, start_time)

        cached_url = await self._lookup_from_cache(short_code)
        if cached_url:
            CACHE_HITS_TOTAL.inc()
            URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.HIT).inc()
            self._logger.debug(f"Cache hit for {short_code}")
            return cached_url

        CACHE_MISSES_TOTAL.inc()
        url = await self._lookup_from_store(short_code, start_time)
        await self._cache.set(short_code, url.original_url)

        URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
        URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.MISS).inc()
        self._logger.debug(f"Database hit and cached for {short_code}")
        return url.original_url

    async def describe(self, short_code: str) -> URL:
        """Return the full record for ``short_code``.

        The cache only holds URL strings, so this always reads the store; the
        result still refreshes the cache entry.
        """
        start_time = time.perf_counter()
        self._check_short_code(short_code, start_time)

        url = await self._lookup_from_store(short_code, start_time)
        await self._cache.set(short_code, url.original_url)

        URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
        URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.MISS).inc()
        return url

    def _check_short_code(self, short_code: str, start_time: float) -> None:
        _require_short_code(short_code)
        # Codes outside the alphabet or the column width never reach the cache or the store.
        if not is_well_formed(short_code, self._max_code_length):
            URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=CacheStatus.MISS).inc()
            raise NotFound(f"Short code '{short_code}' not found")

    async def _lookup_from_cache(self, short_code: str) -> str | None:
        try:
            return await self._cache.get(short_code)
        except CacheUnavailable as exc:
            CACHE_READ_FAILURES_TOTAL.inc()
            self._logger.warning(f"{exc}; falling back to record store")
            return None

    async def _lookup_from_store(self, short_code: str, start_time: float) -> URL:
        try:
            url = await self._store.get_by_short_code(short_code)
        except NotFound:
            URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=CacheStatus.MISS).inc()
            raise
        except StoreUnavailable as exc:
            URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR, cache_hit=CacheStatus.MISS).inc()
            self._logger.error(f"URL lookup error for {short_code}: {exc}")
            raise
        finally:
            DATABASE_READS_TOTAL.inc()
        return url
