"""Pydantic schemas for request/response validation.

Wire fields are camelCase (``originalUrl``, ``shortCode``); Python attributes stay
snake_case through an alias generator.

Schema Hierarchy
=================
::
    URLCreate (Input)
    └─ originalUrl: str

    URLResponse (Output, POST /api/v1/urls)
    ├─ id: int
    ├─ shortCode: str
    ├─ originalUrl: str
    └─ shortUrl: str

    URLRecordResponse (Output, GET /api/v1/urls/{shortCode})
    ├─ ...URLResponse
    ├─ createdAt: datetime
    └─ updatedAt: datetime

    HealthResponse, PingResponse, ErrorResponse

Key Behaviours
===============
- URL syntax is validated by the write coordinator, not by the schema, so a bad
  URL is reported by the same error path whether it arrives over HTTP or not.
- Models read ORM attributes directly (``from_attributes``).
"""

import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shortener.enums import HealthStatus, ServiceRole
from shortener.models import URL

__all__ = [
    "URLCreate",
    "URLResponse",
    "URLRecordResponse",
    "HealthResponse",
    "PingResponse",
    "ErrorResponse",
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class URLCreate(_CamelModel):
    original_url: str


class URLResponse(_CamelModel):
    id: int
    short_code: str
    original_url: str
    short_url: str

    @classmethod
    def from_model(cls, url: URL, base_url: str) -> "URLResponse":
        return cls(
            id=url.id,
            short_code=url.short_code,
            original_url=url.original_url,
            short_url=f"{base_url}/{url.short_code}",
        )


class URLRecordResponse(URLResponse):
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @classmethod
    def from_model(cls, url: URL, base_url: str) -> "URLRecordResponse":
        return cls(
            id=url.id,
            short_code=url.short_code,
            original_url=url.original_url,
            short_url=f"{base_url}/{url.short_code}",
            created_at=url.created_at,
            updated_at=url.updated_at,
        )


class HealthResponse(BaseModel):
    status: HealthStatus
    service: ServiceRole


class PingResponse(BaseModel):
    message: str = "pong"


class ErrorResponse(BaseModel):
    error: str
    code: str
