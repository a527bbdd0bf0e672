"""Tests for ai/tools/tool_registry.py."""

from __future__ import annotations

from typing import Any, ClassVar

import pytest

from pmassist.ai.tools.base import ActionPlan, MutatingTool, ReadTool, ToolContext, ToolKind
from pmassist.ai.tools.errors import ValidationError
from pmassist.ai.tools.permissions import PermissionScope, Resource
from pmassist.ai.tools.query_tools import GetMilestonesTool
from pmassist.ai.tools.tool_registry import DuplicateToolError, ToolRegistry

from tests.helpers import make_context


# -----------------------------------------------------------------------------
# Test Fixtures and Helpers
# -----------------------------------------------------------------------------


class EchoTool(ReadTool):
    name: ClassVar[str] = "echo"
    description: ClassVar[str] = "Echo the text"
    parameters: ClassVar[dict[str, Any]] = {
        "type": "object",
        "properties": {"text": {"type": "string"}, "count": {"type": "integer", "minimum": 1}},
        "required": ["text"],
        "additionalProperties": False,
    }
    resource: ClassVar[str] = Resource.TASKS

    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        return dict(params)


class CloseTaskTool(MutatingTool):
    name: ClassVar[str] = "closeTask"
    description: ClassVar[str] = "Close a task"
    resource: ClassVar[str] = Resource.TASKS

    async def prepare(self, context: ToolContext, params: dict[str, Any]) -> ActionPlan:
        return ActionPlan(parameters=params, preview="close")

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        return "closed"


class NamelessTool(ReadTool):
    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        return {}


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


class TestRegistration:
    def test_register_and_get(self):
        registry = ToolRegistry()
        registration = registry.register(EchoTool(), metadata={"source": "test"})

        assert registry.get("echo") is registration.tool
        assert registration.metadata == {"source": "test"}
        assert not registration.is_mutating
        assert "echo" in registry
        assert len(registry) == 1

    def test_duplicate_name_raises(self):
        registry = ToolRegistry([EchoTool()])

        with pytest.raises(DuplicateToolError) as info:
            registry.register(EchoTool())
        assert info.value.name == "echo"

    def test_nameless_tool_raises(self):
        with pytest.raises(ValueError):
            ToolRegistry().register(NamelessTool())

    def test_mutating_registration(self):
        registry = ToolRegistry([CloseTaskTool()])

        registration = registry.get_registration("closeTask")

        assert registration.is_mutating
        assert registration.spec.kind is ToolKind.MUTATING
        assert registration.spec.operation == "edit"

    def test_unregister(self):
        registry = ToolRegistry([EchoTool()])

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert registry.get("echo") is None

    def test_disable_and_enable(self):
        registry = ToolRegistry([EchoTool()])

        registry.disable("echo")
        assert registry.get("echo") is None
        assert not registry.has("echo")
        assert registry.list_names() == []
        assert registry.list_names(include_disabled=True) == ["echo"]

        registry.enable("echo")
        assert registry.has("echo")
        assert registry.enable("missing") is False


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


class TestValidation:
    def test_valid_arguments(self):
        ToolRegistry([EchoTool()]).validate("echo", {"text": "hi", "count": 2})

    def test_missing_required(self):
        with pytest.raises(ValidationError) as info:
            ToolRegistry([EchoTool()]).validate("echo", {})
        assert "text" in info.value.message

    def test_wrong_type_names_parameter(self):
        with pytest.raises(ValidationError) as info:
            ToolRegistry([EchoTool()]).validate("echo", {"text": "hi", "count": 0})
        assert info.value.parameter == "count"

    def test_unknown_tool(self):
        with pytest.raises(KeyError):
            ToolRegistry().validate("nope", {})


# -----------------------------------------------------------------------------
# OpenAI declarations
# -----------------------------------------------------------------------------


class TestOpenAITools:
    def test_declaration_format(self):
        tools = ToolRegistry([GetMilestonesTool()]).get_openai_tools()

        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "getMilestones"
        assert tools[0]["function"]["parameters"]["type"] == "object"

    def test_filtered_by_scope(self):
        registry = ToolRegistry([EchoTool(), CloseTaskTool()])
        viewer = PermissionScope.for_context(make_context("viewer"))
        contributor = PermissionScope.for_context(make_context("contributor", resource_id="res-1"))

        assert [tool["function"]["name"] for tool in registry.get_openai_tools(scope=viewer)] == ["echo"]
        assert len(registry.get_openai_tools(scope=contributor)) == 2
        assert len(registry.get_openai_tools()) == 2
