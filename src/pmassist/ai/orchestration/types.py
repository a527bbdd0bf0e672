"""Core type definitions for the orchestration engine.

This module defines the dataclasses that flow between the dialogue loop,
the tool dispatcher and the confirmation gate. Request-scoped values are
frozen so they can be shared safely between concurrently dispatched reads.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping, Sequence

from openai.types.chat import ChatCompletionMessageParam

__all__ = [
    # Session
    "UserContext",
    "SessionContext",
    # Model interaction types
    "Message",
    "ToolCall",
    "ModelResponse",
    # Tool results
    "ErrorDescriptor",
    "ToolResult",
    "ToolCallRecord",
    # Actions
    "ActionState",
    "PendingAction",
    # Turn output
    "TurnUsage",
    "TurnOutput",
]


# -----------------------------------------------------------------------------
# Session Context
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class UserContext:
    """Who is asking, as established by the authenticated caller.

    Attributes:
        role: Project role used to look up the permission matrix.
        user_id: Stable identifier of the authenticated user.
        resource_id: The user's own resource record (owned-record identity).
        partner_id: Tenant-scoping identity, when the user belongs to a partner.
        display_name: Name used when addressing the user.
    """

    role: str
    user_id: str
    resource_id: str | None = None
    partner_id: str | None = None
    display_name: str = ""


@dataclass(slots=True, frozen=True)
class SessionContext:
    """Immutable per-request bundle. Never persisted across requests."""

    project_id: str
    user: UserContext
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def identity(self) -> str:
        """Stable identity used for caching, rate limiting and confirmation."""
        parts = [self.user.user_id, self.user.role, self.user.resource_id or "-", self.user.partner_id or "-"]
        return "|".join(parts)


# -----------------------------------------------------------------------------
# Message Type
# -----------------------------------------------------------------------------

MessageRole = Literal["system", "user", "assistant", "tool"]


@dataclass(slots=True, frozen=True)
class ToolCall:
    """A structured tool request emitted by the model.

    Attributes:
        call_id: Identifier linking the call to its result message.
        name: Declared tool name.
        arguments: Raw JSON argument text as produced by the model.
    """

    call_id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the argument JSON.

        Raises:
            ValueError: If the text is not a JSON object.
        """
        if not self.arguments or not self.arguments.strip():
            return {}
        value = json.loads(self.arguments)
        if not isinstance(value, dict):
            raise ValueError("tool arguments must be a JSON object")
        return value

    def to_chat_param(self) -> dict[str, Any]:
        return {
            "id": self.call_id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or "{}"},
        }


@dataclass(slots=True, frozen=True)
class Message:
    """Immutable chat message.

    Can be converted to OpenAI's ChatCompletionMessageParam format.

    Attributes:
        role: The role of the message sender.
        content: The text content of the message.
        name: Optional name for tool messages.
        tool_call_id: ID linking a tool result to its call.
        tool_calls: Tool calls made by the assistant.
    """

    role: MessageRole
    content: str
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    def to_chat_param(self) -> ChatCompletionMessageParam:
        """Convert to OpenAI's ChatCompletionMessageParam format."""
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            payload["name"] = self.name
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = [call.to_chat_param() for call in self.tool_calls]
        return payload  # type: ignore[return-value]

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Sequence[ToolCall] | None = None) -> Message:
        return cls(
            role="assistant",
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: str | None = None) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


@dataclass(slots=True, frozen=True)
class ModelResponse:
    """Model output for one completion: free text or tool calls.

    Attributes:
        text: Text content from the model.
        tool_calls: Structured tool requests, empty for a final answer.
        finish_reason: Why the model stopped generating.
        prompt_tokens: Tokens used in the prompt.
        completion_tokens: Tokens used in the completion.
        model: Model that generated the response.
    """

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------


class ActionState(str, Enum):
    """Lifecycle of a proposed mutation."""

    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (ActionState.SUCCEEDED, ActionState.FAILED, ActionState.ABANDONED)


@dataclass(slots=True)
class PendingAction:
    """One mutation proposal and its progress through the confirmation gate.

    Attributes:
        action_name: Mutating tool name.
        parameters: Resolved parameters (entity ids, not fuzzy text). The
            client must echo these verbatim to confirm.
        preview: Human-readable description of exactly what will change.
        confirmed: Whether an explicit confirmation was supplied.
        state: Current lifecycle state.
        message: Outcome message once executed.
        token: Fingerprint of the stored proposal.
        data: Preview data (current values) for rendering.
    """

    action_name: str
    parameters: dict[str, Any]
    preview: str
    confirmed: bool = False
    state: ActionState = ActionState.PROPOSED
    message: str | None = None
    token: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "actionName": self.action_name,
            "parameters": dict(self.parameters),
            "preview": self.preview,
            "confirmed": self.confirmed,
            "state": self.state.value,
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.token is not None:
            payload["token"] = self.token
        if self.data:
            payload["data"] = dict(self.data)
        return payload


# -----------------------------------------------------------------------------
# Tool Results
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ErrorDescriptor:
    """User-safe description of a failed tool call."""

    code: str
    message: str
    recoverable: bool = True
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.details:
            payload.update(dict(self.details))
        return payload


@dataclass(slots=True)
class ToolResult:
    """Outcome of dispatching one tool call.

    Attributes:
        call_id: The ID of the tool call.
        name: Name of the tool.
        success: Whether the call produced a payload.
        payload: Result payload when successful.
        error: Error descriptor when unsuccessful.
        cached: Whether the payload came from the response cache.
        action: Pending/executed action for mutating tools.
        serialized: Pre-serialized payload text, kept so cache hits are byte-identical.
        duration_ms: Dispatch time in milliseconds.
    """

    call_id: str
    name: str
    success: bool
    payload: dict[str, Any] | None = None
    error: ErrorDescriptor | None = None
    cached: bool = False
    action: PendingAction | None = None
    serialized: str | None = None
    duration_ms: float = 0.0

    @property
    def content(self) -> str:
        """JSON text fed back to the model as the tool message."""
        if self.success:
            if self.serialized is not None:
                return self.serialized
            return serialize_payload(self.payload or {})
        error = self.error.to_dict() if self.error else {"error": "internal_error", "message": "Unknown error"}
        return serialize_payload(error)

    @classmethod
    def ok(cls, call_id: str, name: str, payload: Mapping[str, Any], **kwargs: Any) -> ToolResult:
        data = dict(payload)
        return cls(call_id=call_id, name=name, success=True, payload=data, serialized=serialize_payload(data), **kwargs)

    @classmethod
    def failed(cls, call_id: str, name: str, error: ErrorDescriptor, **kwargs: Any) -> ToolResult:
        return cls(call_id=call_id, name=name, success=False, error=error, **kwargs)


def serialize_payload(payload: Mapping[str, Any]) -> str:
    """Deterministic JSON serialization used for tool messages and caching."""
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)


@dataclass(slots=True, frozen=True)
class ToolCallRecord:
    """Record of a tool call made during a turn, for logging and responses."""

    call_id: str
    name: str
    arguments: str
    success: bool
    cached: bool = False
    error_code: str | None = None
    duration_ms: float = 0.0


# -----------------------------------------------------------------------------
# Turn Output
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class TurnUsage:
    """Token usage accumulated over every model call in a turn."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    model_calls: int = 0
    tool_calls: int = 0
    model: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, response: ModelResponse) -> None:
        self.prompt_tokens += response.prompt_tokens
        self.completion_tokens += response.completion_tokens
        self.model_calls += 1
        if response.model:
            self.model = response.model

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "model_calls": self.model_calls,
            "tool_calls": self.tool_calls,
            "model": self.model,
        }


@dataclass(slots=True)
class TurnOutput:
    """Final result of one dialogue loop run."""

    message: str
    actions: tuple[PendingAction, ...] = ()
    tool_records: tuple[ToolCallRecord, ...] = ()
    usage: TurnUsage = field(default_factory=TurnUsage)
    iterations: int = 0

    @property
    def tools_used(self) -> bool:
        return bool(self.tool_records)
