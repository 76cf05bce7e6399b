"""Dependency injection for shared resources and per-request coordinators.

Shared resources (the Redis client, the allocator, the resolution cache) live on
a :class:`ServiceManager` that the application lifespan constructs, starts and
stops explicitly; it is stored on ``app.state`` rather than in a module global.
Per-request objects (database session, record store, coordinators, request
context) are assembled by FastAPI dependencies, which tests override.

Dependency Graph
================
::
    get_write_coordinator ─┬─ get_allocator ────────── get_service_manager
                           ├─ get_record_store ─────── get_db
                           └─ get_request_context
    get_read_coordinator ──┬─ get_resolution_cache ─── get_service_manager
                           ├─ get_record_store ─────── get_db
                           └─ get_request_context
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.allocator import IDAllocator
from shortener.cache import ResolutionCache
from shortener.config import Settings, get_settings
from shortener.database import close_db, get_db, init_db
from shortener.redis import close_redis, create_redis
from shortener.store import RecordStore
from shortener.url_service import ReadCoordinator, WriteCoordinator

__all__ = [
    "ServiceManager",
    "RequestContext",
    "setup_logging",
    "get_service_manager",
    "get_request_context",
    "get_allocator",
    "get_resolution_cache",
    "get_record_store",
    "get_write_coordinator",
    "get_read_coordinator",
]


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the ``urlshortener`` logger once."""
    logger = logging.getLogger("urlshortener")
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Owns the process-wide connections and the components built on them.

    Lifecycle::

        manager = ServiceManager(settings)
        await manager.initialize()   # tables, Redis client, counter floor
        ...
        await manager.cleanup()      # close Redis, dispose engine
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.logger = setup_logging(settings.LOG_LEVEL)
        self.redis: redis.Redis | None = None
        self.allocator: IDAllocator | None = None
        self.cache: ResolutionCache | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return

        await init_db()
        self.logger.info("Database tables created/verified successfully")

        self.redis = create_redis(self.settings)
        self.allocator = IDAllocator(self.redis, self.settings.COUNTER_KEY, self.settings.COUNTER_FLOOR)
        self.cache = ResolutionCache(
            self.redis,
            key_prefix=self.settings.CACHE_KEY_PREFIX,
            ttl_seconds=self.settings.CACHE_TTL_SECONDS,
        )

        if self.settings.SERVICE_ROLE.serves_writes:
            await self.allocator.initialize()

        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} started with role '{self.settings.SERVICE_ROLE}'")

    async def cleanup(self) -> None:
        """Release shared resources at shutdown."""
        await close_redis(self.redis)
        self.redis = None
        self.allocator = None
        self.cache = None
        await close_db()
        self._initialized = False


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking: ids for log correlation and timing.

    Attributes:
        settings: Application settings.
        request_id: Taken from ``X-Request-ID`` or generated.
        trace_id: Correlation id from ``X-Trace-ID`` (defaults to request_id).
        client_ip: Client address, if known.
        start_time: Request start timestamp.
    """

    settings: Settings
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Logger that tags every record with this request's ids."""
        return logging.LoggerAdapter(
            logging.getLogger("urlshortener"),
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.services


def get_request_context(request: Request) -> RequestContext:
    client_ip = request.client.host if request.client else None
    request_id = request.headers.get("x-request-id")
    context = RequestContext(
        settings=get_settings(),
        trace_id=request.headers.get("x-trace-id"),
        client_ip=client_ip,
    )
    if request_id:
        context.request_id = request_id
    return context


def get_allocator(manager: ServiceManager = Depends(get_service_manager)) -> IDAllocator:
    return manager.allocator


def get_resolution_cache(manager: ServiceManager = Depends(get_service_manager)) -> ResolutionCache:
    return manager.cache


def get_record_store(db: AsyncSession = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_write_coordinator(
    allocator: IDAllocator = Depends(get_allocator),
    store: RecordStore = Depends(get_record_store),
    ctx: RequestContext = Depends(get_request_context),
) -> WriteCoordinator:
    return WriteCoordinator(allocator, store, ctx.settings, logger=ctx.logger)


def get_read_coordinator(
    cache: ResolutionCache = Depends(get_resolution_cache),
    store: RecordStore = Depends(get_record_store),
    ctx: RequestContext = Depends(get_request_context),
) -> ReadCoordinator:
    return ReadCoordinator(cache, store, max_code_length=ctx.settings.SHORT_CODE_MAX_LENGTH, logger=ctx.logger)
