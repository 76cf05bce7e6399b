"""PostgreSQL record store: the authoritative code → URL mapping.

Flow Diagram: save()
=====================
::
    ┌─────────────┐
    │ INSERT urls │
    └──────┬──────┘
    OK?    │
    ┌──────┴──────────┬────────────────────┐
    │ YES             │ UNIQUE VIOLATION   │ CONNECTION / TIMEOUT
    ▼                 ▼                    ▼
┌─────────┐   ┌───────────────┐   ┌────────────────┐
│ refresh │   │ rollback      │   │ rollback       │
│ + return│   │ DuplicateShort│   │ StoreUnavail-  │
│ record  │   │ Code          │   │ able           │
└─────────┘   └───────────────┘   └────────────────┘

Key Behaviours
===============
- Uniqueness of ``short_code`` is enforced by the database constraint; the store
  never pre-checks with a SELECT.
- ``id``, ``created_at`` and ``updated_at`` are filled in by the database.
- No update or delete operations exist.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.errors import DuplicateShortCode, NotFound, StoreUnavailable
from shortener.models import URL

__all__ = ["RecordStore"]

logger = logging.getLogger("urlshortener.store")


class RecordStore:
    """Record store bound to one database session (one per request)."""

    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def save(self, original_url: str, short_code: str) -> URL:
        """Insert a new record and return it with its store-assigned fields.

        Raises:
            DuplicateShortCode: If ``short_code`` is already taken.
            StoreUnavailable: If the database cannot be reached or times out.
        """
        url = URL(original_url=original_url, short_code=short_code)
        try:
            self._db.add(url)
            await self._db.commit()
            await self._db.refresh(url)
        except IntegrityError as exc:
            await self._db.rollback()
            logger.error(f"Database collision for code: {short_code}")
            raise DuplicateShortCode(short_code) from exc
        except (SQLAlchemyError, OSError) as exc:
            await self._safe_rollback()
            raise StoreUnavailable(f"Failed to save URL: {exc}") from exc
        return url

    async def get_by_short_code(self, short_code: str) -> URL:
        """Fetch the record for ``short_code``.

        Raises:
            NotFound: If no record matches.
            StoreUnavailable: If the database cannot be reached or times out.
        """
        try:
            result = await self._db.execute(select(URL).where(URL.short_code == short_code))
            url = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable(f"Failed to get URL: {exc}") from exc

        if url is None:
            raise NotFound(f"Short code '{short_code}' not found")
        return url

    async def _safe_rollback(self) -> None:
        try:
            await self._db.rollback()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning(f"Rollback after store failure also failed: {exc}")
