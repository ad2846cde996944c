"""
Distributed, TTL-bounded mutex on Redis.

Acquisition is try-once (``SET NX EX``); a crashed holder frees the key when
its lease expires. Release is owner-checked with a compare-and-delete script
so a worker whose lease already expired cannot drop another worker's lock.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, TypeVar

from redis import Redis

from app.exceptions import LockAcquisitionFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_TTL_SECONDS = 1

_UNLOCK_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class LockManager:
    """Non-blocking named locks. One owner token per manager instance."""

    def __init__(self, redis_client: Redis, owner_token: Optional[str] = None) -> None:
        self.redis = redis_client
        self.owner_token = owner_token or uuid.uuid4().hex

    def acquire(self, key: str, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS) -> bool:
        """Try once to take the lock. Returns False if someone else holds it."""
        acquired = self.redis.set(key, self.owner_token, nx=True, ex=ttl_seconds)
        if acquired:
            logger.debug("Lock acquired: %s (ttl=%ss)", key, ttl_seconds)
        return bool(acquired)

    def release(self, key: str) -> bool:
        """Release the lock if this manager still owns it."""
        released = self.redis.eval(_UNLOCK_LUA, 1, key, self.owner_token)
        if not released:
            logger.debug("Lock %s not released: expired or owned by another", key)
        return bool(released)

    def locked(self, key: str) -> bool:
        return bool(self.redis.exists(key))

    def with_lock(
        self,
        key: str,
        fn: Callable[[], T],
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ) -> T:
        """
        Run ``fn`` while holding ``key``.

        Raises:
            LockAcquisitionFailure: the lock is held elsewhere; the caller
                decides whether to reschedule.
        """
        if not self.acquire(key, ttl_seconds):
            raise LockAcquisitionFailure(key)
        try:
            return fn()
        finally:
            self.release(key)
