"""
Redis-backed idempotency markers.

Two states per id: ``processing`` while a worker owns it and ``done`` once the
side effect is applied. Both expire with the guard's TTL.
"""

from __future__ import annotations

from typing import Callable

from redis import Redis

PROCESSING = "processing"
DONE = "done"


class IdempotencyGuard:
    def __init__(
        self,
        redis_client: Redis,
        ttl_seconds: int,
        key_builder: Callable[[str], str] = lambda key: key,
    ) -> None:
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self._key = key_builder

    def is_done(self, identifier: str) -> bool:
        return self.redis.get(self._key(identifier)) == DONE

    def is_in_progress(self, identifier: str) -> bool:
        return self.redis.get(self._key(identifier)) == PROCESSING

    def mark_in_progress(self, identifier: str) -> bool:
        """Claim the id. Only one caller wins while the marker is alive."""
        return bool(
            self.redis.set(
                self._key(identifier), PROCESSING, nx=True, ex=self.ttl_seconds
            )
        )

    def mark_done(self, identifier: str) -> None:
        self.redis.set(self._key(identifier), DONE, ex=self.ttl_seconds)

    def clear(self, identifier: str) -> None:
        self.redis.delete(self._key(identifier))
