"""FastAPI route definitions.

Routes are split by service role so the write and read halves can be deployed
separately from the same code base.

API Endpoint Overview
=====================
::
    ops_router (every role)
        GET  /api/health            └─ HealthResponse (200), liveness only
        GET  /api/ping              └─ PingResponse (200)

    write_router (write, all)
        POST /api/v1/urls           ├─ URLCreate
                                    └─ URLResponse (201) / 400 / 500

    read_router (read, all)
        GET  /api/v1/urls/{code}    └─ URLRecordResponse (200) / 400 / 404 / 500
        GET  /{code}                └─ 302 Redirect / 400 / 404 / 500

Errors raised by the coordinators are turned into JSON error bodies by the
exception handlers registered in ``shortener.main``.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from shortener.dependencies import (
    RequestContext,
    get_read_coordinator,
    get_request_context,
    get_write_coordinator,
)
from shortener.enums import HealthStatus
from shortener.errors import ValidationError
from shortener.schemas import (
    ErrorResponse,
    HealthResponse,
    PingResponse,
    URLCreate,
    URLRecordResponse,
    URLResponse,
)
from shortener.url_service import ReadCoordinator, WriteCoordinator

__all__ = ["ops_router", "write_router", "read_router"]

_error_responses = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

ops_router = APIRouter(tags=["ops"])
write_router = APIRouter(tags=["urls"], responses=_error_responses)
read_router = APIRouter(responses=_error_responses)


@ops_router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    # Liveness only: counter, store and cache are deliberately not probed.
    return HealthResponse(status=HealthStatus.UP, service=request.app.state.role)


@ops_router.get("/api/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    return PingResponse()


@write_router.post("/api/v1/urls", response_model=URLResponse, status_code=201)
async def create_short_url(
    payload: URLCreate,
    ctx: RequestContext = Depends(get_request_context),
    coordinator: WriteCoordinator = Depends(get_write_coordinator),
) -> URLResponse:
    ctx.logger.info(f"URL shortening requested: {payload.original_url}")
    url = await coordinator.create_short_url(payload.original_url)
    ctx.logger.info(f"URL shortened successfully: {url.short_code} ({ctx.get_duration():.1f}ms)")
    return URLResponse.from_model(url, ctx.settings.BASE_URL)


@read_router.get("/api/v1/urls/", include_in_schema=False)
@read_router.get("/", include_in_schema=False)
async def missing_short_code() -> None:
    raise ValidationError("short code is required")


@read_router.get("/api/v1/urls/{short_code}", response_model=URLRecordResponse, tags=["urls"])
async def get_url_record(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    coordinator: ReadCoordinator = Depends(get_read_coordinator),
) -> URLRecordResponse:
    ctx.logger.info(f"Record requested for short code: {short_code}")
    url = await coordinator.describe(short_code)
    return URLRecordResponse.from_model(url, ctx.settings.BASE_URL)


@read_router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    coordinator: ReadCoordinator = Depends(get_read_coordinator),
) -> RedirectResponse:
    original_url = await coordinator.resolve(short_code)
    ctx.logger.info(f"Redirect successful: {short_code} -> {original_url} ({ctx.get_duration():.1f}ms)")
    return RedirectResponse(url=original_url, status_code=302)
