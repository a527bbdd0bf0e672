"""Key-value store used by the response cache, rate limiter and confirmation gate.

The orchestration services never keep module-level state: each one receives a
:class:`KeyValueStore` so production deployments can supply a shared backend
while tests use :class:`InMemoryKeyValueStore` with a fake clock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

__all__ = [
    "Clock",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "StoreStats",
]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]

_UNBOUNDED_SWEEP_AT = 1024


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for TTL-aware key-value storage."""

    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        """Store ``value`` under ``key``; ``ttl_seconds=None`` never expires."""
        ...

    def expire(self, key: str) -> bool:
        """Remove ``key``; returns whether it was present."""
        ...


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class StoreStats:
    """Counters for store operations.

    Attributes:
        hits: Reads that returned a value.
        misses: Reads that found nothing.
        evictions: Entries dropped because the store was full.
        expirations: Entries dropped because their TTL elapsed.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float | None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


# -----------------------------------------------------------------------------
# In-memory store
# -----------------------------------------------------------------------------


class InMemoryKeyValueStore:
    """Thread-safe LRU store with lazy TTL expiry.

    Expired entries are dropped when they are next read, or swept when the
    store grows past its limit. If that is not enough the least recently used
    entry is evicted. With ``max_entries=None`` live entries are never
    evicted; expired ones are swept each time the store doubles in size.

    Example:
        >>> store = InMemoryKeyValueStore(max_entries=100)
        >>> store.set("k", "v", ttl_seconds=60)
        >>> store.get("k")
        'v'
    """

    def __init__(self, *, max_entries: int | None = 1024, clock: Clock | None = None) -> None:
        self._max_entries = None if max_entries is None else max(1, int(max_entries))
        self._sweep_at = self._max_entries or _UNBOUNDED_SWEEP_AT
        self._clock: Clock = clock or time.monotonic
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = StoreStats()

    @property
    def stats(self) -> StoreStats:
        return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats.expirations += 1
                self._stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        expires_at = None if ttl_seconds is None else self._clock() + max(0.0, float(ttl_seconds))
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=expires_at)
            self._entries.move_to_end(key)
            if len(self._entries) <= self._sweep_at:
                return
            self._sweep_expired()
            if self._max_entries is None:
                self._sweep_at = max(_UNBOUNDED_SWEEP_AT, 2 * len(self._entries))
                return
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                LOGGER.debug("Evicted key %s from in-memory store", evicted)

    def expire(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._stats.expirations += len(expired)
