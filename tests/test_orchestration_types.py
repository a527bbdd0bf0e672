"""Tests for orchestration type definitions."""

from __future__ import annotations

import json

import pytest

from pmassist.ai.orchestration.types import (
    ActionState,
    ErrorDescriptor,
    Message,
    ModelResponse,
    PendingAction,
    SessionContext,
    ToolCall,
    ToolResult,
    TurnUsage,
    UserContext,
)


class TestSessionContext:
    def test_identity_includes_scoping_fields(self):
        user = UserContext(role="contributor", user_id="u1", resource_id="r1", partner_id="p1")
        context = SessionContext(project_id="proj", user=user)

        assert context.identity == "u1|contributor|r1|p1"

    def test_identity_placeholders(self):
        context = SessionContext(project_id="proj", user=UserContext(role="viewer", user_id="u2"))

        assert context.identity == "u2|viewer|-|-"

    def test_request_ids_are_unique(self):
        user = UserContext(role="viewer", user_id="u2")

        assert SessionContext("p", user).request_id != SessionContext("p", user).request_id


class TestToolCall:
    def test_parsed_arguments(self):
        assert ToolCall("c", "t", '{"a": 1}').parsed_arguments() == {"a": 1}
        assert ToolCall("c", "t", "  ").parsed_arguments() == {}

    @pytest.mark.parametrize("raw", ["[1]", "nope", "3"])
    def test_non_object_arguments_raise(self, raw):
        with pytest.raises(ValueError):
            ToolCall("c", "t", raw).parsed_arguments()


class TestMessage:
    def test_assistant_with_tool_calls_to_chat_param(self):
        message = Message.assistant("", [ToolCall("c1", "getTasks", "{}")])

        assert message.to_chat_param() == {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"id": "c1", "type": "function", "function": {"name": "getTasks", "arguments": "{}"}}],
        }

    def test_tool_message(self):
        param = Message.tool('{"ok": true}', "c1", name="getTasks").to_chat_param()

        assert param["tool_call_id"] == "c1"
        assert param["name"] == "getTasks"


class TestToolResult:
    def test_ok_serializes_deterministically(self):
        result = ToolResult.ok("c1", "getTasks", {"b": 1, "a": "é"})

        assert result.content == '{"a": "é", "b": 1}'

    def test_failed_content_is_error_descriptor(self):
        error = ErrorDescriptor(code="not_found", message="Nothing", recoverable=True, details={"identifier": "x"})
        result = ToolResult.failed("c1", "findEntity", error)

        assert json.loads(result.content) == {
            "error": "not_found",
            "message": "Nothing",
            "recoverable": True,
            "identifier": "x",
        }


class TestActions:
    def test_terminal_states(self):
        assert ActionState.SUCCEEDED.is_terminal
        assert ActionState.ABANDONED.is_terminal
        assert not ActionState.PROPOSED.is_terminal

    def test_pending_action_payload(self):
        action = PendingAction("completeTask", {"taskIdentifier": "t1"}, "Mark task done", token="abc")

        payload = action.to_dict()

        assert payload["actionName"] == "completeTask"
        assert payload["state"] == "proposed"
        assert payload["confirmed"] is False
        assert payload["token"] == "abc"
        assert "message" not in payload


class TestTurnUsage:
    def test_accumulates_across_responses(self):
        usage = TurnUsage()
        usage.add(ModelResponse(prompt_tokens=10, completion_tokens=2, model="m1"))
        usage.add(ModelResponse(prompt_tokens=5, completion_tokens=1))

        assert usage.total_tokens == 18
        assert usage.model_calls == 2
        assert usage.to_dict()["model"] == "m1"
