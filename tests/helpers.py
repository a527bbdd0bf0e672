"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Mapping, Sequence

from pmassist.ai.orchestration.types import Message, ModelResponse, SessionContext, ToolCall, UserContext

PROJECT_ID = "proj-1"
OTHER_PROJECT_ID = "proj-2"
TODAY = date(2024, 5, 15)  # a Wednesday; the week runs Sun 12th to Sat 18th


def seed_records() -> dict[str, list[dict]]:
    return {
        "resources": [
            {"id": "res-alice", "project_id": PROJECT_ID, "name": "Alice Adams", "role": "Developer"},
            {"id": "res-bob", "project_id": PROJECT_ID, "name": "Bob Brown", "role": "Tester"},
            {"id": "res-carol", "project_id": PROJECT_ID, "name": "Carol Clark", "role": "Project Manager"},
            {"id": "res-dave", "project_id": OTHER_PROJECT_ID, "name": "Dave Dunn", "role": "Developer"},
        ],
        "milestones": [
            {
                "id": "ms-design",
                "project_id": PROJECT_ID,
                "name": "Phase 1 Review - Design",
                "status": "In Progress",
                "progress": 40,
            },
            {
                "id": "ms-build",
                "project_id": PROJECT_ID,
                "name": "Phase 1 Review - Build",
                "status": "Not Started",
                "progress": 0,
            },
            {"id": "ms-golive", "project_id": PROJECT_ID, "name": "Go Live", "status": "Not Started", "progress": 0},
            {
                "id": "ms-foreign",
                "project_id": OTHER_PROJECT_ID,
                "name": "Go Live",
                "status": "Not Started",
                "progress": 0,
            },
        ],
        "deliverables": [
            {"id": "del-design", "project_id": PROJECT_ID, "name": "Design Document", "status": "In Progress"},
            {"id": "del-report", "project_id": PROJECT_ID, "name": "Test Report", "status": "Not Started"},
        ],
        "tasks": [
            {
                "id": "task-plan",
                "project_id": PROJECT_ID,
                "name": "Write test plan",
                "status": "Not Started",
                "progress": 0,
                "assigned_to": "res-bob",
            },
            {
                "id": "task-ci",
                "project_id": PROJECT_ID,
                "name": "Configure CI",
                "status": "Complete",
                "progress": 100,
                "assigned_to": "res-alice",
            },
        ],
        "raid_items": [
            {
                "id": "raid-r7",
                "project_id": PROJECT_ID,
                "type": "Risk",
                "reference_number": 7,
                "title": "Supplier delay",
                "status": "Open",
                "owner_id": "res-carol",
                "resolution_notes": None,
            },
            {
                "id": "raid-i3",
                "project_id": PROJECT_ID,
                "type": "Issue",
                "reference_number": 3,
                "title": "Data migration gaps",
                "status": "Closed",
                "owner_id": "res-bob",
                "resolution_notes": None,
            },
        ],
        "timesheets": [
            {
                "id": "ts-alice-1",
                "project_id": PROJECT_ID,
                "resource_id": "res-alice",
                "date": "2024-05-14",
                "hours": 7.5,
                "deliverable_id": "del-design",
                "validation_status": "Draft",
            },
            {
                "id": "ts-alice-2",
                "project_id": PROJECT_ID,
                "resource_id": "res-alice",
                "date": "2024-05-06",
                "hours": 8.0,
                "deliverable_id": None,
                "validation_status": "Draft",
            },
            {
                "id": "ts-alice-3",
                "project_id": PROJECT_ID,
                "resource_id": "res-alice",
                "date": "2024-05-03",
                "hours": 6.0,
                "deliverable_id": None,
                "validation_status": "Submitted",
            },
            {
                "id": "ts-bob-1",
                "project_id": PROJECT_ID,
                "resource_id": "res-bob",
                "date": "2024-05-13",
                "hours": 8.0,
                "deliverable_id": "del-report",
                "validation_status": "Draft",
            },
        ],
        "expenses": [
            {
                "id": "exp-alice-1",
                "project_id": PROJECT_ID,
                "resource_id": "res-alice",
                "date": "2024-05-14",
                "description": "Train to site",
                "amount": 42.5,
                "currency": "£",
                "validation_status": "Draft",
            },
            {
                "id": "exp-bob-1",
                "project_id": PROJECT_ID,
                "resource_id": "res-bob",
                "date": "2024-05-13",
                "description": "Hotel",
                "amount": 120.0,
                "currency": "£",
                "validation_status": "Draft",
            },
        ],
    }


def make_context(
    role: str,
    *,
    user_id: str | None = None,
    resource_id: str | None = None,
    project_id: str = PROJECT_ID,
    display_name: str = "",
) -> SessionContext:
    user = UserContext(
        role=role,
        user_id=user_id or f"user-{role}",
        resource_id=resource_id,
        display_name=display_name,
    )
    return SessionContext(project_id=project_id, user=user)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep that returns immediately and records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def tool_call(name: str, arguments: Mapping[str, Any] | None = None, call_id: str | None = None) -> ToolCall:
    return ToolCall(call_id=call_id or f"call-{name}", name=name, arguments=json.dumps(dict(arguments or {})))


def text_response(text: str, *, prompt_tokens: int = 10, completion_tokens: int = 5) -> ModelResponse:
    return ModelResponse(
        text=text,
        finish_reason="stop",
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        model="test-model",
    )


def tools_response(*calls: ToolCall, prompt_tokens: int = 10, completion_tokens: int = 5) -> ModelResponse:
    return ModelResponse(
        tool_calls=tuple(calls),
        finish_reason="tool_calls",
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        model="test-model",
    )


class MockModelClient:
    """Model client stub that replays scripted responses.

    The last response is repeated once the script is exhausted. Every call is
    recorded so tests can inspect the messages and tool declarations sent.

    Example:
        client = MockModelClient([tools_response(tool_call("getMilestones")), text_response("Done")])
    """

    def __init__(self, responses: Sequence[ModelResponse | BaseException] | None = None) -> None:
        self.responses = list(responses or [text_response("Test response")])
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
    ) -> ModelResponse:
        self.calls.append(
            {
                "messages": list(messages),
                "tools": list(tools or []),
                "temperature": temperature,
                "max_completion_tokens": max_completion_tokens,
            }
        )
        response = self.responses[min(len(self.calls) - 1, len(self.responses) - 1)]
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def tool_names(self, index: int = 0) -> list[str]:
        return [tool["function"]["name"] for tool in self.calls[index]["tools"]]
