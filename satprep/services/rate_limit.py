"""
Fixed-window request limiter.

Counters live in a TTLStore whose entry lifetime is the window itself, so a
key's window starts on its first request and the counter disappears once the
window has passed. Expired entries are swept at most once per
CLEANUP_INTERVAL_SECONDS.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from satprep.services.ttl_store import TTLStore

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after_seconds: int


class RateLimiter:
    def __init__(self, store: TTLStore) -> None:
        self._store = store
        self._last_cleanup = store.now()

    def _cleanup(self) -> None:
        now = self._store.now()
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        purged = self._store.purge_expired()
        if purged:
            logger.debug("Rate limiter purged %d expired windows", purged)

    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        self._cleanup()

        count = self._store.get(key)
        if count is None:
            self._store.set(key, 1, ttl=window_seconds)
            return RateLimitResult(allowed=True, remaining=limit - 1, retry_after_seconds=0)

        expires_at = self._store.expires_at(key) or self._store.now()
        if count >= limit:
            retry_after = math.ceil(expires_at - self._store.now())
            return RateLimitResult(
                allowed=False, remaining=0, retry_after_seconds=max(1, retry_after)
            )

        # Keep the original window end when bumping the counter
        self._store.set(key, count + 1, ttl=expires_at - self._store.now())
        return RateLimitResult(
            allowed=True, remaining=limit - (count + 1), retry_after_seconds=0
        )
