"""Tests for the services container.

This module tests the Services container dataclass and factory function.
"""

from __future__ import annotations

import pytest

from pmassist.ai.orchestration.services import (
    ErrorTranslator,
    InMemoryKeyValueStore,
    RateLimiter,
    ResponseCache,
    RetryPolicy,
    Services,
    create_services,
)
from pmassist.services.settings import Settings

from tests.helpers import FakeClock, RecordingSleep


class TestCreateServices:
    """Tests for the create_services factory."""

    def test_defaults(self):
        services = create_services()

        assert isinstance(services, Services)
        assert isinstance(services.response_cache, ResponseCache)
        assert isinstance(services.rate_limiter, RateLimiter)
        assert isinstance(services.retry, RetryPolicy)
        assert isinstance(services.translator, ErrorTranslator)
        assert services.store is not services.proposals
        assert services.limits is not services.store

    def test_settings_flow_into_services(self):
        settings = Settings(
            cache_ttl_seconds=15,
            rate_limit_max_requests=4,
            retry_max_attempts=5,
            proposal_ttl_seconds=120,
            expose_diagnostics=True,
            environment="test",
        )

        services = create_services(settings)

        assert services.response_cache.ttl_seconds == 15
        assert services.rate_limiter.max_requests == 4
        assert services.retry.max_attempts == 5
        assert services.proposal_ttl_seconds == 120
        assert services.translator.expose_diagnostics is True

    def test_injected_clock_and_sleep(self):
        clock = FakeClock()
        sleep = RecordingSleep()

        services = create_services(Settings(rate_limit_max_requests=1), clock=clock, sleep=sleep)

        assert services.clock is clock
        assert services.retry.sleep is sleep
        assert services.rate_limiter.check("u").allowed
        assert not services.rate_limiter.check("u").allowed
        clock.advance(60)
        assert services.rate_limiter.check("u").allowed

    def test_injected_stores(self):
        shared = InMemoryKeyValueStore()
        limits = InMemoryKeyValueStore(max_entries=None)
        proposals = InMemoryKeyValueStore()

        services = create_services(store=shared, limits=limits, proposals=proposals)

        assert services.store is shared
        assert services.limits is limits
        assert services.proposals is proposals

    def test_cache_churn_does_not_reset_rate_limit_windows(self):
        clock = FakeClock()
        services = create_services(
            Settings(cache_max_entries=8, rate_limit_max_requests=2),
            clock=clock,
        )
        limiter = services.rate_limiter
        cache = services.response_cache

        assert limiter.check("alice").allowed
        assert limiter.check("alice").allowed
        assert not limiter.check("alice").allowed

        for index in range(10):
            cache.put(cache.build_key("getMilestones", {"page": index}, "bob"), "{}")

        decision = limiter.check("alice")
        assert not decision.allowed
        assert decision.retry_after == 60

    @pytest.mark.parametrize("key", ["cache_ttl_seconds", "rate_limit_max_requests", "retry_max_attempts"])
    def test_summary_keys(self, key):
        assert key in create_services().summary()
