"""Shared enums for the short-code service.

Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "ServiceRole", "RequestStatus", "CacheStatus"]


class HealthStatus(StrEnum):
    """Liveness values reported by the health endpoint."""

    UP = "up"


class ServiceRole(StrEnum):
    """Which half of the system a process serves."""

    WRITE = "write"
    READ = "read"
    ALL = "all"

    @property
    def serves_writes(self) -> bool:
        return self in (ServiceRole.WRITE, ServiceRole.ALL)

    @property
    def serves_reads(self) -> bool:
        return self in (ServiceRole.READ, ServiceRole.ALL)


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"
