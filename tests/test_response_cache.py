"""Tests for the read response cache."""

from __future__ import annotations

from pmassist.ai.orchestration.services.kv_store import InMemoryKeyValueStore
from pmassist.ai.orchestration.services.response_cache import ResponseCache

from tests.helpers import FakeClock


def _cache(clock: FakeClock, ttl: float = 60.0) -> ResponseCache:
    return ResponseCache(InMemoryKeyValueStore(clock=clock), ttl_seconds=ttl)


class TestResponseCache:
    def test_key_is_stable_under_parameter_order(self):
        cache = _cache(FakeClock())
        first = cache.build_key("getTimesheets", {"a": 1, "b": 2}, "user|role")
        second = cache.build_key("getTimesheets", {"b": 2, "a": 1}, "user|role")
        assert first == second
        assert first.startswith(ResponseCache.KEY_PREFIX)

    def test_key_differs_per_identity_tool_and_params(self):
        cache = _cache(FakeClock())
        base = cache.build_key("getTimesheets", {"a": 1}, "alice")
        assert base != cache.build_key("getTimesheets", {"a": 1}, "bob")
        assert base != cache.build_key("getExpenses", {"a": 1}, "alice")
        assert base != cache.build_key("getTimesheets", {"a": 2}, "alice")

    def test_hit_within_ttl_and_miss_after(self):
        clock = FakeClock()
        cache = _cache(clock, ttl=60)
        key = cache.build_key("getMilestones", {}, "alice")
        cache.put(key, '{"count": 1}')
        clock.advance(59)
        assert cache.get(key) == '{"count": 1}'
        clock.advance(1)
        assert cache.get(key) is None

    def test_zero_ttl_disables_caching(self):
        cache = _cache(FakeClock(), ttl=0)
        key = cache.build_key("getMilestones", {}, "alice")
        cache.put(key, "{}")
        assert cache.get(key) is None

    def test_non_text_entry_is_discarded(self):
        store = InMemoryKeyValueStore()
        cache = ResponseCache(store)
        store.set("response:x", {"not": "text"})
        assert cache.get("response:x") is None
        assert store.get("response:x") is None

    def test_invalidate(self):
        cache = _cache(FakeClock())
        cache.put("response:k", "{}")
        assert cache.invalidate("response:k") is True
        assert cache.get("response:k") is None
