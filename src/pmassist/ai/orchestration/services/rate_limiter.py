"""Fixed-window per-identity rate limiting."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass

from ...tools.errors import RateLimitedError
from .kv_store import Clock, KeyValueStore

__all__ = [
    "RateLimitRecord",
    "RateLimitDecision",
    "RateLimiter",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RateLimitRecord:
    """Request count for the current window of one identity."""

    count: int
    reset_at: float


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window.
        reset_at: Clock time at which the window resets.
        retry_after: Whole seconds until the window resets (0 when allowed).
    """

    allowed: bool
    remaining: int
    reset_at: float
    retry_after: int = 0


class RateLimiter:
    """Allows ``max_requests`` per ``window_seconds`` for each identity.

    The window is created on the first request and recreated lazily on the
    first request after it has elapsed. Every checked request counts,
    including rejected ones.
    """

    KEY_PREFIX = "ratelimit:"

    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._max_requests = max(1, int(max_requests))
        self._window_seconds = max(1.0, float(window_seconds))
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def check(self, identity: str) -> RateLimitDecision:
        key = self.KEY_PREFIX + identity
        with self._lock:
            now = self._clock()
            record = self._store.get(key)
            if not isinstance(record, RateLimitRecord) or now >= record.reset_at:
                record = RateLimitRecord(count=0, reset_at=now + self._window_seconds)
            record = RateLimitRecord(count=record.count + 1, reset_at=record.reset_at)
            self._store.set(key, record, ttl_seconds=record.reset_at - now)

        allowed = record.count <= self._max_requests
        remaining = max(0, self._max_requests - record.count)
        retry_after = 0 if allowed else max(1, math.ceil(record.reset_at - now))
        if not allowed:
            LOGGER.info("Rate limit exceeded for %s (retry in %ds)", identity, retry_after)
        return RateLimitDecision(
            allowed=allowed,
            remaining=remaining,
            reset_at=record.reset_at,
            retry_after=retry_after,
        )

    def enforce(self, identity: str) -> RateLimitDecision:
        """Like :meth:`check` but raises :class:`RateLimitedError` when over quota."""
        decision = self.check(identity)
        if not decision.allowed:
            raise RateLimitedError(retry_after=decision.retry_after)
        return decision
