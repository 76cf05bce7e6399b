"""FastAPI application entry point.

One code base serves both halves of the system. ``SERVICE_ROLE`` selects which
routes a process mounts, so write-heavy and read-heavy traffic can be deployed
and scaled independently while sharing only the counter, the store and the cache.

Application Lifecycle Diagram
=============================
::
    ┌─────────────────┐
    │ create_app(role)│
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ exception       │
    │ handlers, CORS, │
    │ /metrics        │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ lifespan()      │
    │ startup:        │
    │ ServiceManager  │
    │ .initialize()   │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ Serve HTTP      │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ lifespan()      │
    │ shutdown:       │
    │ .cleanup()      │
    └─────────────────┘

How to Use
===========
**Run both roles locally**::
    uvicorn shortener.main:app --port 8000

**Run one role**::
    SERVICE_ROLE=write uvicorn shortener.main:app --port 8000
    SERVICE_ROLE=read  uvicorn shortener.main:app --port 8001

**Shorten and follow**::
    curl -X POST http://localhost:8000/api/v1/urls \
         -H "Content-Type: application/json" \
         -d '{"originalUrl": "https://example.com"}'
    curl -i http://localhost:8000/<shortCode>
"""

__all__ = ["app", "create_app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.config import get_settings
from shortener.dependencies import ServiceManager
from shortener.enums import ServiceRole
from shortener.errors import ShortenerError, ValidationError
from shortener.routes import ops_router, read_router, write_router

settings = get_settings()
logger = logging.getLogger("urlshortener")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    manager = ServiceManager(settings.model_copy(update={"SERVICE_ROLE": app.state.role}))
    app.state.services = manager
    await manager.initialize()
    yield
    # Shutdown
    await manager.cleanup()


async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
    if exc.client_fault:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    else:
        logger.error(
            f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}"
            + (f" (caused by: {exc.__cause__})" if exc.__cause__ else "")
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    error = ValidationError(messages or "invalid request")
    logger.warning(f"{request.method} {request.url.path} -> 400: {error.message}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(role: ServiceRole = settings.SERVICE_ROLE) -> FastAPI:
    app = FastAPI(
        title=f"{settings.APP_NAME} ({role})",
        version="1.0.0",
        description="Short-code allocation and cache-aside resolution service",
        lifespan=lifespan,
    )
    app.state.role = role

    app.add_exception_handler(ShortenerError, shortener_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # /metrics must be registered before the read router's /{short_code} catch-all.
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app)

    app.include_router(ops_router)
    if role.serves_writes:
        app.include_router(write_router)
    if role.serves_reads:
        app.include_router(read_router)
    return app


app = create_app()
