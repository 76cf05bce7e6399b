"""Shared-counter ID allocator.

Every replica of the write service draws ids from one Redis key. ``INCR`` is
atomic on the Redis server, so no two calls anywhere in the fleet can observe
the same value; this is the only thing preventing short-code collisions.

Flow Diagram: Allocation
=========================
::
    ┌─────────────┐        ┌─────────────┐
    │ next_id()   │──INCR─▶│ Redis       │
    └──────┬──────┘        │ url_counter │
           │◀──── n ───────└─────────────┘
           ▼
    ┌─────────────┐
    │ return n    │  (or AllocatorUnavailable)
    └─────────────┘

Startup Initialization
======================
The counter starts at a configured floor so the very first code already has the
full length. ``initialize()`` runs once per replica at startup. The
read-compare-set runs as one Lua script on the server, so two replicas booting
at the same time cannot reset the counter underneath increments issued between
the read and the write.

Key Behaviours
===============
- Values are strictly increasing in issuance order and never repeat.
- No ranges are pre-allocated or cached in process.
- Failures are never retried here; callers decide.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortener.errors import AllocatorUnavailable

__all__ = ["IDAllocator", "FLOOR_SCRIPT"]

logger = logging.getLogger("urlshortener.allocator")

# KEYS[1] = counter key, ARGV[1] = floor.
# Sets the counter to floor - 1 when absent or below the floor; returns 1 when it did.
FLOOR_SCRIPT = """
local floor = tonumber(ARGV[1])
local current = tonumber(redis.call('GET', KEYS[1]))
if current == nil or current < floor then
    redis.call('SET', KEYS[1], string.format('%d', floor - 1))
    return 1
end
return 0
"""


class IDAllocator:
    """Issues globally unique, strictly increasing integers from a Redis counter.

    Args:
        client: Redis client connected to the shared counter store.
        key: Name of the counter key.
        floor: First value handed out after a fresh initialization.
    """

    def __init__(self, client: redis.Redis, key: str, floor: int) -> None:
        if floor < 1:
            raise ValueError("floor must be >= 1")
        self._client = client
        self._key = key
        self._floor = floor

    async def initialize(self) -> bool:
        """Raise the counter to ``floor - 1`` if it is missing or below the floor.

        Returns:
            bool: True if the counter was reset, False if it was left untouched.

        Raises:
            AllocatorUnavailable: If Redis cannot be reached.
        """
        try:
            reset = await self._client.eval(FLOOR_SCRIPT, 1, self._key, self._floor)
        except (RedisError, OSError) as exc:
            raise AllocatorUnavailable(f"Failed to initialize counter '{self._key}': {exc}") from exc

        if int(reset):
            logger.info(f"Initialized counter '{self._key}' to start from {self._floor}")
            return True

        logger.info(f"Counter '{self._key}' already at or above floor {self._floor}")
        return False

    async def next_id(self) -> int:
        """Atomically increment the shared counter by one and return the new value.

        Raises:
            AllocatorUnavailable: If Redis cannot be reached, times out, or the
                reply is not an integer.
        """
        try:
            value = await self._client.incr(self._key)
        except (RedisError, OSError) as exc:
            raise AllocatorUnavailable(f"Failed to get next ID from counter '{self._key}': {exc}") from exc

        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise AllocatorUnavailable(f"Counter '{self._key}' returned a non-integer value: {value!r}") from exc
