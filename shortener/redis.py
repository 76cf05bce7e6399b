"""Redis client construction for the counter and the resolution cache.

One client per process serves both the allocator (``INCR`` on the shared counter)
and the resolution cache (``GET`` / ``SET EX`` on ``url:<code>`` keys). The client
is built by the service manager at startup and closed at shutdown; nothing here
holds module-level state.

How to Use
===========
**Step 1: Build on startup**::
    client = create_redis(settings)

**Step 2: Close on shutdown**::
    await close_redis(client)

Key Behaviours
===============
- UTF-8 encoding with ``decode_responses`` for string operations.
- Socket connect/read timeouts are bounded so a hung Redis surfaces as an
  ``*Unavailable`` error instead of blocking a request forever.
"""

import redis.asyncio as redis

from shortener.config import Settings

__all__ = ["create_redis", "close_redis"]


def create_redis(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )


async def close_redis(client: redis.Redis | None) -> None:
    if client is not None:
        await client.aclose()
