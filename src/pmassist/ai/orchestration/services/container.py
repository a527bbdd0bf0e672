"""Services container for the orchestration engine.

This module defines the Services container that holds the resilience
primitives shared by the dispatcher, the confirmation gate and the request
handler.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .error_translator import ErrorTranslator
from .kv_store import Clock, InMemoryKeyValueStore, KeyValueStore
from .rate_limiter import RateLimiter
from .response_cache import ResponseCache
from .retry import RetryPolicy, SleepFn

if TYPE_CHECKING:
    from ....services.settings import Settings

__all__ = [
    "Services",
    "create_services",
]


@dataclass(slots=True)
class Services:
    """Container holding all orchestration services.

    Every stateful service is handed a :class:`KeyValueStore` instead of
    keeping module-level state, so one container per process (or one per
    test) is all that is needed.

    Attributes:
        store: Backing store for cached responses.
        limits: Backing store for rate-limit windows; never evicts live windows.
        proposals: Backing store for pending confirmation proposals.
        response_cache: TTL cache of read tool responses.
        rate_limiter: Per-identity request limiter.
        retry: Backoff policy for data-store reads.
        translator: Maps failures to user-safe messages.
        proposal_ttl_seconds: How long an unconfirmed proposal stays valid.
        clock: Clock shared with the proposal store.

    Example:
        >>> services = create_services()
        >>> services.rate_limiter.check("user-1").allowed
        True
    """

    store: KeyValueStore
    limits: KeyValueStore
    proposals: KeyValueStore
    response_cache: ResponseCache
    rate_limiter: RateLimiter
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    translator: ErrorTranslator = field(default_factory=ErrorTranslator)
    proposal_ttl_seconds: float = 900.0
    clock: Clock = time.monotonic

    def summary(self) -> dict[str, object]:
        """Configuration summary for startup logging."""
        return {
            "cache_ttl_seconds": self.response_cache.ttl_seconds,
            "rate_limit_max_requests": self.rate_limiter.max_requests,
            "retry_max_attempts": self.retry.max_attempts,
            "proposal_ttl_seconds": self.proposal_ttl_seconds,
            "expose_diagnostics": self.translator.expose_diagnostics,
        }


def create_services(
    settings: "Settings | None" = None,
    *,
    clock: Clock | None = None,
    sleep: SleepFn | None = None,
    store: KeyValueStore | None = None,
    limits: KeyValueStore | None = None,
    proposals: KeyValueStore | None = None,
) -> Services:
    """Create a Services container from settings.

    Args:
        settings: Runtime settings; defaults are used when omitted.
        clock: Monotonic clock shared by the in-memory stores and the limiter.
        sleep: Awaitable sleep used by the retry policy between attempts.
        store: Store for cached responses.
        limits: Store for rate-limit windows. Must not evict live entries.
        proposals: Store for confirmation proposals.

    Returns:
        Configured Services container.
    """
    if settings is None:
        from ....services.settings import Settings

        settings = Settings()

    backing = store or InMemoryKeyValueStore(max_entries=settings.cache_max_entries, clock=clock)
    limit_store = limits or InMemoryKeyValueStore(max_entries=None, clock=clock)
    proposal_store = proposals or InMemoryKeyValueStore(max_entries=settings.cache_max_entries, clock=clock)
    return Services(
        store=backing,
        limits=limit_store,
        proposals=proposal_store,
        response_cache=ResponseCache(backing, ttl_seconds=settings.cache_ttl_seconds),
        rate_limiter=RateLimiter(
            limit_store,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
        ),
        retry=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
            sleep=sleep or asyncio.sleep,
        ),
        translator=ErrorTranslator(expose_diagnostics=settings.diagnostics_enabled),
        proposal_ttl_seconds=settings.proposal_ttl_seconds,
        clock=clock or time.monotonic,
    )
