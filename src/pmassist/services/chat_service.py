"""Request handler for the chat endpoint.

Parses the inbound payload, applies the per-user rate limit, routes explicit
confirmations straight to the dispatcher and everything else through the
dialogue loop, and maps failures to short messages and status codes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Mapping

from ..ai.client import AIClient, ClientSettings, ModelClient
from ..ai.orchestration.runner import ConversationRunner, RunnerConfig, truncate_history
from ..ai.orchestration.services.container import Services, create_services
from ..ai.orchestration.services.kv_store import Clock
from ..ai.orchestration.services.retry import SleepFn
from ..ai.orchestration.tool_dispatcher import ToolDispatcher
from ..ai.orchestration.types import (
    Message,
    PendingAction,
    SessionContext,
    TurnUsage,
    UserContext,
)
from ..ai.tools.errors import ErrorCode, RateLimitedError, ValidationError
from ..ai.tools.tool_registry import ToolRegistry
from ..ai.tools.tool_wiring import build_default_registry
from ..data.store import DataStore
from .settings import Settings, redact_secret
from ..utils.logging import configure_from_settings, request_scope

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ChatService",
    "ConfirmationRequest",
    "STATUS_BY_ERROR",
    "create_chat_service",
    "sanitize_messages",
]

LOGGER = logging.getLogger(__name__)

# Errors not listed here are conversational refusals and keep status 200.
STATUS_BY_ERROR: Mapping[str, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.UPSTREAM_SERVICE_ERROR: 503,
    ErrorCode.ITERATION_LIMIT: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_ALLOWED_ROLES = ("user", "assistant")


def sanitize_messages(
    raw: Any,
    *,
    max_chars: int = 4_000,
    limit: int = 10,
) -> tuple[Message, ...]:
    """Turn client-supplied messages into a safe conversation.

    Only user/assistant messages with non-empty string content survive.
    Control characters are stripped, content is capped at ``max_chars`` and
    only the last ``limit`` messages are kept.

    Raises:
        ValidationError: ``raw`` is not a list.
    """
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError(message="Messages must be a list", parameter="messages")
    messages: list[Message] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        role = item.get("role")
        content = item.get("content")
        if role not in _ALLOWED_ROLES or not isinstance(content, str):
            continue
        cleaned = _CONTROL_CHARS.sub("", content).strip()[:max_chars]
        if cleaned:
            messages.append(Message(role=role, content=cleaned))
    return tuple(truncate_history(messages, limit))


def _required_text(payload: Mapping[str, Any], key: str, parameter: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message=f"{parameter} is required", parameter=parameter)
    return value.strip()


def _optional_text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# -----------------------------------------------------------------------------
# Request / Response
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ConfirmationRequest:
    """The user's answer to a previously shown preview."""

    action_name: str
    parameters: Mapping[str, Any]
    confirmed: bool

    @classmethod
    def from_payload(cls, payload: Any) -> "ConfirmationRequest":
        if not isinstance(payload, Mapping):
            raise ValidationError(message="confirmation must be an object", parameter="confirmation")
        parameters = payload.get("parameters") or {}
        if not isinstance(parameters, Mapping):
            raise ValidationError(message="confirmation.parameters must be an object", parameter="confirmation.parameters")
        return cls(
            action_name=_required_text(payload, "actionName", "confirmation.actionName"),
            parameters=dict(parameters),
            confirmed=payload.get("confirmed") is True,
        )


@dataclass(slots=True)
class ChatRequest:
    """One inbound chat request."""

    messages: tuple[Message, ...]
    context: SessionContext
    confirmation: ConfirmationRequest | None = None

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        max_message_chars: int = 4_000,
        history_limit: int = 10,
    ) -> "ChatRequest":
        """Parse the JSON body sent by the client.

        Raises:
            ValidationError: Required fields are missing or malformed.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError(message="Request body must be an object")
        user_payload = payload.get("userContext")
        if not isinstance(user_payload, Mapping):
            raise ValidationError(message="userContext is required", parameter="userContext")

        user = UserContext(
            role=_required_text(user_payload, "role", "userContext.role"),
            user_id=_required_text(user_payload, "userId", "userContext.userId"),
            resource_id=_optional_text(user_payload, "resourceId"),
            partner_id=_optional_text(user_payload, "partnerId"),
            display_name=_optional_text(user_payload, "displayName") or "",
        )
        context = SessionContext(project_id=_required_text(payload, "projectId", "projectId"), user=user)
        messages = sanitize_messages(payload.get("messages"), max_chars=max_message_chars, limit=history_limit)

        confirmation = None
        if payload.get("confirmation") is not None:
            confirmation = ConfirmationRequest.from_payload(payload["confirmation"])
        elif not any(message.role == "user" for message in messages):
            raise ValidationError(message="At least one user message is required", parameter="messages")
        return cls(messages=messages, context=context, confirmation=confirmation)


@dataclass(slots=True)
class ChatResponse:
    """Outbound response; ``status`` is the HTTP status to send."""

    status: int
    message: str
    actions: tuple[PendingAction, ...] = ()
    usage: TurnUsage | None = None
    iterations: int = 0
    tools_used: bool = False
    error: str | None = None
    recoverable: bool | None = None
    retry_after: int | None = None
    diagnostic: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "message": self.message,
            "actions": [action.to_dict() for action in self.actions],
            "toolsUsed": self.tools_used,
        }
        if self.usage is not None:
            usage = self.usage.to_dict()
            usage["iterations"] = self.iterations
            payload["usage"] = usage
        if self.error is not None:
            payload["error"] = self.error
            payload["recoverable"] = bool(self.recoverable)
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        if self.diagnostic:
            payload["diagnostic"] = self.diagnostic
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# -----------------------------------------------------------------------------
# Chat Service
# -----------------------------------------------------------------------------


class ChatService:
    """Entry point used by the web layer."""

    def __init__(
        self,
        runner: ConversationRunner,
        dispatcher: ToolDispatcher,
        services: Services,
        settings: Settings | None = None,
    ) -> None:
        self._runner = runner
        self._dispatcher = dispatcher
        self._services = services
        self._settings = settings or Settings()

    @property
    def services(self) -> Services:
        return self._services

    async def handle_payload(self, payload: Any) -> ChatResponse:
        """Parse and handle a raw JSON body."""
        try:
            request = ChatRequest.from_payload(
                payload,
                max_message_chars=self._settings.max_message_chars,
                history_limit=self._settings.history_limit,
            )
        except ValidationError as exc:
            return self._error_response(exc)
        return await self.handle(request)

    async def handle(self, request: ChatRequest) -> ChatResponse:
        context = request.context
        with request_scope(context.request_id, context.user.user_id):
            return await self._handle(request, context)

    async def _handle(self, request: ChatRequest, context: SessionContext) -> ChatResponse:
        decision = self._services.rate_limiter.check(context.identity)
        if not decision.allowed:
            LOGGER.info("Rate limited %s for %ss", context.user.user_id, decision.retry_after)
            return self._error_response(RateLimitedError(retry_after=decision.retry_after))

        if request.confirmation is not None:
            return await self._handle_confirmation(request.confirmation, context)

        try:
            output = await self._runner.run(request.messages, context)
        except Exception as exc:  # noqa: BLE001
            return self._error_response(exc)

        return ChatResponse(
            status=200,
            message=output.message,
            actions=output.actions,
            usage=output.usage,
            iterations=output.iterations,
            tools_used=output.tools_used,
        )

    async def _handle_confirmation(self, confirmation: ConfirmationRequest, context: SessionContext) -> ChatResponse:
        if not confirmation.confirmed:
            result = self._dispatcher.abandon(confirmation.action_name, confirmation.parameters, context)
            action = result.action
            return ChatResponse(
                status=200,
                message=action.message if action and action.message else "Okay.",
                actions=(action,) if action else (),
            )

        result = await self._dispatcher.confirm(confirmation.action_name, confirmation.parameters, context)
        actions = (result.action,) if result.action else ()
        if result.success:
            message = result.action.message if result.action and result.action.message else "Done."
            return ChatResponse(status=200, message=message, actions=actions, tools_used=True)

        error = result.error
        code = error.code if error else ErrorCode.INTERNAL_ERROR
        details = dict(error.details) if error else {}
        return ChatResponse(
            status=STATUS_BY_ERROR.get(code, 200),
            message=error.message if error else "The change could not be made.",
            actions=actions,
            tools_used=True,
            error=code,
            recoverable=error.recoverable if error else True,
            diagnostic=details.pop("diagnostic", None),
            details=details,
        )

    def _error_response(self, exc: BaseException) -> ChatResponse:
        translated = self._services.translator.translate(exc, operation="chat")
        details = dict(translated.details)
        retry_after = details.pop("retry_after", None)
        return ChatResponse(
            status=STATUS_BY_ERROR.get(translated.code, 500),
            message=translated.message,
            error=translated.code,
            recoverable=translated.recoverable,
            retry_after=retry_after,
            diagnostic=translated.diagnostic,
            details=details,
        )


def create_chat_service(
    settings: Settings | None = None,
    *,
    store: DataStore,
    client: ModelClient | None = None,
    registry: ToolRegistry | None = None,
    services: Services | None = None,
    clock: Clock | None = None,
    sleep: SleepFn | None = None,
    today: Callable[[], date] = date.today,
    configure_logging: bool = False,
) -> ChatService:
    """Wire a :class:`ChatService` from settings.

    Args:
        settings: Runtime settings; defaults are used when omitted.
        store: Project data store.
        client: Model client; an :class:`AIClient` is built from settings when omitted.
        registry: Tool registry; all bundled tools when omitted.
        services: Resilience services; built from settings when omitted.
        clock: Clock for TTLs and rate-limit windows.
        sleep: Sleep used between retries.
        today: Date source for date ranges and date stamps.
        configure_logging: Set up the log file and console handlers from settings.
    """
    settings = settings or Settings()
    if configure_logging:
        configure_from_settings(settings)
    services = services or create_services(settings, clock=clock, sleep=sleep)
    registry = registry or build_default_registry()
    if client is None:
        client = AIClient(ClientSettings.from_settings(settings))
    dispatcher = ToolDispatcher(registry, store, services, today=today)
    runner = ConversationRunner(
        client,
        dispatcher,
        registry,
        config=RunnerConfig.from_settings(settings),
        today=today,
    )
    LOGGER.info(
        "Chat service ready: model=%s key=%s tools=%d %s",
        settings.model,
        redact_secret(settings.api_key) or "<unset>",
        len(registry),
        services.summary(),
    )
    return ChatService(runner, dispatcher, services, settings)
