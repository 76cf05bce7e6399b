"""Database configuration and session management.

This module provides SQLAlchemy async engine setup, session management,
and database lifecycle operations using PostgreSQL as the backend.

Flow Diagram: Database Operations
=================================
::
    ┌─────────────┐
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_db()    │
    │ dependency  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Yield async │
    │ session     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close  │
    │ (finally)   │
    └─────────────┘

Key Behaviours
===============
- Async sessions are closed after each request.
- asyncpg connect and command timeouts are bounded by ``DATABASE_TIMEOUT_SECONDS``.
- Tables (and the ``updated_at`` trigger on PostgreSQL) are created on startup.
- The engine is disposed on shutdown.

Functions:
    get_db():  FastAPI dependency for database sessions.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import get_settings

__all__ = ["Base", "engine", "get_db", "init_db", "close_db"]

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=20,
    max_overflow=10,
    pool_pre_ping=True,
    pool_timeout=settings.DATABASE_TIMEOUT_SECONDS,
    connect_args={
        "timeout": settings.DATABASE_TIMEOUT_SECONDS,
        "command_timeout": settings.DATABASE_TIMEOUT_SECONDS,
    },
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    # Register the models (and their DDL hooks) on Base.metadata.
    import shortener.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
