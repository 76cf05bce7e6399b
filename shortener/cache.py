"""Redis-backed resolution cache (cache-aside).

Maps ``url:<short_code>`` to the original URL string with a fixed TTL. The cache
is never the source of truth: a miss says nothing about whether the code exists,
and a hit may be up to one TTL stale.

Key Behaviours
===============
- ``get`` reports Redis failures as :class:`CacheUnavailable` so the read path
  can count them and fall through to the record store.
- ``set`` is best effort: failures are logged and counted, never raised.
- ``set`` overwrites unconditionally (last writer wins, last TTL wins).
"""

import logging

import redis.asyncio as redis
from prometheus_client import Counter
from redis.exceptions import RedisError

from shortener.errors import CacheUnavailable

__all__ = ["ResolutionCache", "DEFAULT_CACHE_TTL_SECONDS"]

logger = logging.getLogger("urlshortener.cache")

DEFAULT_CACHE_TTL_SECONDS = 1800  # 30 minutes

CACHE_WRITE_FAILURES_TOTAL = Counter(
    "url_shortener_cache_write_failures_total",
    "Resolution cache writes that failed and were dropped",
)


class ResolutionCache:
    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "url",
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds

    def key_for(self, short_code: str) -> str:
        return f"{self._key_prefix}:{short_code}"

    async def get(self, short_code: str) -> str | None:
        """Return the cached original URL, or None on a miss.

        Raises:
            CacheUnavailable: If Redis cannot be reached.
        """
        try:
            return await self._client.get(self.key_for(short_code))
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"Cache lookup failed for {short_code}: {exc}") from exc

    async def set(self, short_code: str, original_url: str, ttl: int | None = None) -> bool:
        """Cache ``original_url`` under ``short_code``. Returns False if the write was dropped."""
        try:
            await self._client.set(
                self.key_for(short_code),
                original_url,
                ex=ttl if ttl is not None else self._ttl_seconds,
            )
        except (RedisError, OSError) as exc:
            CACHE_WRITE_FAILURES_TOTAL.inc()
            logger.warning(f"Cache write dropped for {short_code}: {exc}")
            return False
        return True
