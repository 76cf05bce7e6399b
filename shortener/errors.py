"""Error taxonomy for the short-code service.

Every failure raised by the core derives from :class:`ShortenerError` and carries
the HTTP status it maps to, a stable machine-readable ``error_code`` and whether
the fault lies with the client or with the infrastructure.

Error Hierarchy
===============
::
    ShortenerError
    ├─ ValidationError          400  client
    ├─ NotFound                 404  client
    ├─ AllocatorUnavailable     500  infrastructure
    ├─ StoreUnavailable         500  infrastructure
    ├─ CacheUnavailable         500  infrastructure (swallowed on the read path)
    ├─ DuplicateShortCode       500  integrity
    ├─ AllocationFailed         500  write path, wraps AllocatorUnavailable
    └─ PersistenceFailed        500  write path, wraps StoreUnavailable
"""

__all__ = [
    "ShortenerError",
    "ValidationError",
    "NotFound",
    "AllocatorUnavailable",
    "StoreUnavailable",
    "CacheUnavailable",
    "DuplicateShortCode",
    "AllocationFailed",
    "PersistenceFailed",
]


class ShortenerError(Exception):
    status_code: int = 500
    error_code: str = "internal_error"
    client_fault: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.error_code}


class ValidationError(ShortenerError):
    """Malformed input. Not retried."""

    status_code = 400
    error_code = "validation_error"
    client_fault = True


class NotFound(ShortenerError):
    """The short code has no record."""

    status_code = 404
    error_code = "not_found"
    client_fault = True


class AllocatorUnavailable(ShortenerError):
    """The counter store could not be reached or the increment not confirmed."""

    error_code = "allocator_unavailable"


class StoreUnavailable(ShortenerError):
    """The record store could not be reached or timed out."""

    error_code = "store_unavailable"


class CacheUnavailable(ShortenerError):
    error_code = "cache_unavailable"


class DuplicateShortCode(ShortenerError):
    """The unique constraint on ``short_code`` rejected an insert."""

    error_code = "duplicate_short_code"

    def __init__(self, short_code: str) -> None:
        super().__init__(f"Short code '{short_code}' already exists")
        self.short_code = short_code


class AllocationFailed(ShortenerError):
    error_code = "allocation_failed"


class PersistenceFailed(ShortenerError):
    error_code = "persistence_failed"
