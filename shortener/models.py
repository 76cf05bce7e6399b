"""SQLAlchemy ORM model for URL records.

Data Model Layout
=================
::
    urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ original_url (TEXT NOT NULL)
    ├─ short_code (VARCHAR(16) NOT NULL UNIQUE, INDEXED)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW(), INDEXED)
    └─ updated_at (TIMESTAMPTZ, DEFAULT NOW(), refreshed by trigger)

Key Behaviours
===============
- ``id`` is assigned by the database and is unrelated to the allocator's counter.
- ``short_code`` uniqueness is enforced by the database, not by the application.
- On PostgreSQL a ``BEFORE UPDATE`` trigger refreshes ``updated_at`` on every
  row update, whoever issues it.
- Records are created once and never updated or deleted by this service.
"""

import datetime

from sqlalchemy import DDL, DateTime, String, Text, event, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.config import get_settings
from shortener.database import Base

__all__ = ["URL"]

settings = get_settings()


class URL(Base):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(
        String(settings.SHORT_CODE_MAX_LENGTH), unique=True, index=True, nullable=False
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<URL(id={self.id}, short_code='{self.short_code}')>"


_update_timestamp_function = DDL(
    """
    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = CURRENT_TIMESTAMP;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """
)

_update_timestamp_trigger = DDL(
    """
    CREATE TRIGGER update_urls_updated_at
        BEFORE UPDATE ON urls
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column()
    """
)

event.listen(URL.__table__, "after_create", _update_timestamp_function.execute_if(dialect="postgresql"))
event.listen(URL.__table__, "after_create", _update_timestamp_trigger.execute_if(dialect="postgresql"))
