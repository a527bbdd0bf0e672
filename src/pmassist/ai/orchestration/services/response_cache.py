"""Short-TTL cache of read tool responses."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Mapping

from .kv_store import KeyValueStore

__all__ = ["ResponseCache"]

LOGGER = logging.getLogger(__name__)


class ResponseCache:
    """Caches serialized read payloads keyed by tool, parameters and identity.

    The identity is part of every key so two users never share an entry, even
    when their effective parameters are identical. Values are stored as the
    exact serialized text so a hit reproduces the original response byte for
    byte.
    """

    KEY_PREFIX = "response:"

    def __init__(self, store: KeyValueStore, *, ttl_seconds: float = 60.0) -> None:
        self._store = store
        self._ttl_seconds = max(0.0, float(ttl_seconds))

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def build_key(self, tool_name: str, params: Mapping[str, Any], identity: str) -> str:
        hasher = hashlib.sha256()
        hasher.update(tool_name.encode("utf-8"))
        hasher.update(b"|")
        hasher.update(json.dumps(dict(params), sort_keys=True, default=str).encode("utf-8"))
        hasher.update(b"|")
        hasher.update(identity.encode("utf-8"))
        return self.KEY_PREFIX + hasher.hexdigest()

    def get(self, key: str) -> str | None:
        value = self._store.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            LOGGER.warning("Discarding non-text cache entry for %s", key)
            self._store.expire(key)
            return None
        return value

    def put(self, key: str, content: str) -> None:
        if self._ttl_seconds <= 0:
            return
        self._store.set(key, content, ttl_seconds=self._ttl_seconds)

    def invalidate(self, key: str) -> bool:
        return self._store.expire(key)
