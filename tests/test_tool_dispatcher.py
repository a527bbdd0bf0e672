"""Tests for ToolDispatcher.

Tests cover:
- Dispatch to read tools and the response cache
- Argument parsing and schema validation
- Ownership narrowing for contributors
- Retry exhaustion and error translation
- Batched dispatch ordering
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, ClassVar

import pytest

from pmassist.ai.orchestration.tool_dispatcher import ToolDispatcher
from pmassist.ai.orchestration.types import ToolCall
from pmassist.ai.tools.base import ReadTool, ToolContext
from pmassist.ai.tools.errors import ErrorCode
from pmassist.ai.tools.permissions import Resource
from pmassist.ai.tools.tool_registry import ToolRegistry
from pmassist.data.store import TransientStoreError

from tests.helpers import TODAY, make_context, tool_call


# =============================================================================
# Test Fixtures
# =============================================================================


class ExplodingTool(ReadTool):
    """A read tool that fails with an unexpected error."""

    name: ClassVar[str] = "explode"
    description: ClassVar[str] = "Always fails"
    resource: ClassVar[str] = Resource.MILESTONES

    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        raise RuntimeError("connection string postgres://secret")


class SlowTool(ReadTool):
    """A read tool that records how many reads overlap."""

    name: ClassVar[str] = "slow"
    description: ClassVar[str] = "Sleeps briefly"
    resource: ClassVar[str] = Resource.MILESTONES
    cacheable: ClassVar[bool] = False

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return {"ok": True}


# =============================================================================
# Basic Dispatch Tests
# =============================================================================


class TestBasicDispatch:
    """Tests for single tool dispatch."""

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error(self, dispatcher, admin_context):
        result = await dispatcher.dispatch(tool_call("deleteProject"), admin_context)

        assert not result.success
        assert result.error.code == ErrorCode.UNSUPPORTED_OPERATION
        assert "deleteProject" in result.error.message

    @pytest.mark.asyncio
    async def test_disabled_tool_returns_error(self, dispatcher, registry, admin_context):
        registry.disable("getMilestones")

        result = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)

        assert result.error.code == ErrorCode.UNSUPPORTED_OPERATION

    @pytest.mark.asyncio
    async def test_read_tool_succeeds(self, dispatcher, admin_context):
        result = await dispatcher.dispatch(tool_call("getMilestones", {"status": "In Progress"}), admin_context)

        assert result.success
        assert result.call_id == "call-getMilestones"
        assert result.payload["count"] == 1
        assert json.loads(result.content) == result.payload
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_read_denied_for_unknown_role(self, dispatcher):
        result = await dispatcher.dispatch(tool_call("getMilestones"), make_context("intern"))

        assert result.error.code == ErrorCode.PERMISSION_DENIED


# =============================================================================
# Argument Handling Tests
# =============================================================================


class TestArguments:
    """Tests for argument parsing and validation."""

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]"])
    @pytest.mark.asyncio
    async def test_malformed_arguments(self, dispatcher, admin_context, raw):
        call = ToolCall(call_id="c1", name="getMilestones", arguments=raw)

        result = await dispatcher.dispatch(call, admin_context)

        assert result.error.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_empty_arguments_are_an_empty_object(self, dispatcher, admin_context):
        call = ToolCall(call_id="c1", name="getMilestones", arguments="")

        result = await dispatcher.dispatch(call, admin_context)

        assert result.success

    @pytest.mark.asyncio
    async def test_schema_violation_names_parameter(self, dispatcher, admin_context):
        result = await dispatcher.dispatch(tool_call("getMilestones", {"status": "Done"}), admin_context)

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.error.details["parameter"] == "status"

    @pytest.mark.asyncio
    async def test_unknown_parameters_are_rejected(self, dispatcher, admin_context):
        result = await dispatcher.dispatch(tool_call("getMilestones", {"projectId": "proj-2"}), admin_context)

        assert result.error.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_required_parameters(self, dispatcher, pm_context, store):
        result = await dispatcher.dispatch(tool_call("updateRaidStatus", {"raidIdentifier": "R-007"}), pm_context)

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert store.calls["select:raid_items"] == 0

    @pytest.mark.parametrize(
        ("name", "arguments"),
        [
            ("resolveRaidItem", {}),
            ("updateRaidStatus", {"raidIdentifier": "R-007", "newStatus": "Bogus"}),
            ("updateMilestoneStatus", {"unexpected": True}),
        ],
    )
    @pytest.mark.asyncio
    async def test_permission_is_checked_before_arguments(self, dispatcher, viewer_context, name, arguments):
        result = await dispatcher.dispatch(tool_call(name, arguments), viewer_context)

        assert result.error.code == ErrorCode.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_malformed_arguments_from_denied_role(self, dispatcher):
        call = ToolCall(call_id="c1", name="getMilestones", arguments="not json")

        result = await dispatcher.dispatch(call, make_context("intern"))

        assert result.error.code == ErrorCode.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_confirm_checks_permission_before_arguments(self, dispatcher, store, viewer_context):
        result = await dispatcher.confirm("updateRaidStatus", {"newStatus": "Bogus"}, viewer_context)

        assert result.error.code == ErrorCode.PERMISSION_DENIED
        assert store.calls["update:raid_items"] == 0


# =============================================================================
# Caching Tests
# =============================================================================


class TestCaching:
    """Tests for the read response cache."""

    @pytest.mark.asyncio
    async def test_repeat_read_is_served_from_cache(self, dispatcher, store, admin_context):
        first = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)
        second = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)

        assert not first.cached
        assert second.cached
        assert second.content == first.content
        assert store.calls["select:milestones"] == 1

    @pytest.mark.asyncio
    async def test_cache_refreshes_after_ttl(self, dispatcher, store, services, clock, admin_context):
        await dispatcher.dispatch(tool_call("getMilestones"), admin_context)
        clock.advance(services.response_cache.ttl_seconds)

        result = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)

        assert not result.cached
        assert store.calls["select:milestones"] == 2

    @pytest.mark.asyncio
    async def test_cache_is_per_identity(self, dispatcher, store, contributor_context, other_contributor_context):
        alice = await dispatcher.dispatch(tool_call("getTimesheets"), contributor_context)
        bob = await dispatcher.dispatch(tool_call("getTimesheets"), other_contributor_context)

        assert not bob.cached
        assert {row["resource_id"] for row in alice.payload["timesheets"]} == {"res-alice"}
        assert {row["resource_id"] for row in bob.payload["timesheets"]} == {"res-bob"}
        assert store.calls["select:timesheets"] == 2

    @pytest.mark.asyncio
    async def test_narrowed_parameters_share_a_cache_entry(self, dispatcher, store, contributor_context):
        spoofed = await dispatcher.dispatch(tool_call("getTimesheets", {"resourceId": "res-bob"}), contributor_context)
        plain = await dispatcher.dispatch(tool_call("getTimesheets"), contributor_context)

        assert {row["resource_id"] for row in spoofed.payload["timesheets"]} == {"res-alice"}
        assert plain.cached
        assert store.calls["select:timesheets"] == 1

    @pytest.mark.asyncio
    async def test_find_entity_is_not_cached(self, dispatcher, admin_context):
        arguments = {"identifier": "Go Live", "entityType": "milestones"}
        await dispatcher.dispatch(tool_call("findEntity", arguments), admin_context)

        result = await dispatcher.dispatch(tool_call("findEntity", arguments), admin_context)

        assert not result.cached


# =============================================================================
# Error Handling Tests
# =============================================================================


class TestErrorHandling:
    """Tests for retry exhaustion and error translation."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, dispatcher, store, sleep, admin_context):
        store.fail_next(TransientStoreError(), TransientStoreError())

        result = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)

        assert result.success
        assert store.calls["select:milestones"] == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_retry_exhaustion_reports_transient_error(self, dispatcher, store, services, admin_context):
        attempts = services.retry.max_attempts
        store.fail_next(*(TransientStoreError() for _ in range(attempts + 2)))

        result = await dispatcher.dispatch(tool_call("getMilestones"), admin_context)

        assert result.error.code == ErrorCode.TRANSIENT_DATA_ERROR
        assert result.error.recoverable is True
        assert store.calls["select:milestones"] == attempts

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generic(self, store, services, admin_context):
        registry = ToolRegistry([ExplodingTool()])
        dispatcher = ToolDispatcher(registry, store, services, today=lambda: TODAY)

        result = await dispatcher.dispatch(tool_call("explode"), admin_context)

        assert result.error.code == ErrorCode.INTERNAL_ERROR
        assert "postgres" not in result.content
        assert "diagnostic" not in result.error.details


# =============================================================================
# Batched Dispatch Tests
# =============================================================================


class TestDispatchMany:
    """Tests for dispatching several calls from one response."""

    @pytest.mark.asyncio
    async def test_results_keep_call_order(self, dispatcher, pm_context):
        calls = [
            tool_call("getMilestones", call_id="a"),
            tool_call("updateRaidStatus", {"raidIdentifier": "R-007", "newStatus": "Closed"}, call_id="b"),
            tool_call("getBogus", call_id="c"),
            tool_call("getTasks", call_id="d"),
        ]

        results = await dispatcher.dispatch_many(calls, pm_context)

        assert [result.call_id for result in results] == ["a", "b", "c", "d"]
        assert [result.success for result in results] == [True, True, False, True]
        assert results[1].action is not None

    @pytest.mark.asyncio
    async def test_reads_run_concurrently(self, store, services, admin_context):
        tool = SlowTool()
        dispatcher = ToolDispatcher(ToolRegistry([tool]), store, services, today=lambda: TODAY)
        calls = [tool_call("slow", call_id=f"s{index}") for index in range(3)]

        results = await dispatcher.dispatch_many(calls, admin_context)

        assert all(result.success for result in results)
        assert tool.peak == 3

    @pytest.mark.asyncio
    async def test_empty_batch(self, dispatcher, admin_context):
        assert await dispatcher.dispatch_many([], admin_context) == []
