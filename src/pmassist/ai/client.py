"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Protocol, Sequence, runtime_checkable

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, APITimeoutError
from openai.types.chat import ChatCompletion, ChatCompletionToolParam

from .orchestration.types import Message, ModelResponse, ToolCall
from .tools.errors import UpstreamServiceError

if TYPE_CHECKING:
    from ..services.settings import Settings

__all__ = [
    "ModelClient",
    "ClientSettings",
    "AIClient",
]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    """Anything that can turn a conversation into a :class:`ModelResponse`."""

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[ChatCompletionToolParam] | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
    ) -> ModelResponse:
        ...


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 60.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            default_headers=dict(settings.default_headers) or None,
            metadata=dict(settings.metadata) or None,
            debug_logging=settings.debug_logging,
        )


class AIClient:
    """Async chat-completions client.

    The SDK's own retries are disabled: a failed completion is reported as
    :class:`UpstreamServiceError` and never repeated by this layer.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[ChatCompletionToolParam] | None = None,
        temperature: float | None = 0.2,
        max_completion_tokens: int | None = None,
    ) -> ModelResponse:
        """Request one chat completion.

        Raises:
            UpstreamServiceError: The model endpoint failed or timed out.
        """
        payload = self._build_chat_payload(
            messages=messages,
            tools=tools,
            temperature=temperature,
            max_completion_tokens=max_completion_tokens,
        )
        LOGGER.debug(
            "Requesting chat completion via %s with %s message(s) and %s tool(s)",
            self._settings.model,
            len(payload["messages"]),
            len(payload.get("tools", ())),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            completion = await self._client.chat.completions.create(**payload)
        except APIStatusError as exc:
            LOGGER.warning("Chat completion failed with status %s: %s", exc.status_code, exc)
            raise UpstreamServiceError(status_code=exc.status_code) from exc
        except (APITimeoutError, APIConnectionError) as exc:
            LOGGER.warning("Chat completion could not reach %s: %s", self._settings.base_url, exc)
            raise UpstreamServiceError() from exc
        except APIError as exc:
            LOGGER.warning("Chat completion failed: %s", exc)
            raise UpstreamServiceError() from exc
        except httpx.HTTPError as exc:
            LOGGER.warning("Chat completion transport error: %s", exc)
            raise UpstreamServiceError() from exc

        return self._normalize_completion(completion)

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )

    def _build_chat_payload(
        self,
        *,
        messages: Sequence[Message],
        tools: Sequence[ChatCompletionToolParam] | None,
        temperature: float | None,
        max_completion_tokens: int | None,
    ) -> Dict[str, Any]:
        if not messages:
            raise ValueError("At least one message is required to start a chat")
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": [message.to_chat_param() for message in messages],
        }
        if tools:
            payload["tools"] = list(tools)
        if temperature is not None:
            payload["temperature"] = temperature
        if max_completion_tokens is not None:
            payload["max_completion_tokens"] = max_completion_tokens
        if self._settings.metadata:
            payload["metadata"] = dict(self._settings.metadata)
        return payload

    def _normalize_completion(self, completion: ChatCompletion) -> ModelResponse:
        if not completion.choices:
            raise UpstreamServiceError(message="The assistant service returned an empty response")
        choice = completion.choices[0]
        message = choice.message
        calls: List[ToolCall] = []
        for tool_call in message.tool_calls or ():
            function = getattr(tool_call, "function", None)
            if function is None:
                continue
            calls.append(ToolCall(call_id=tool_call.id, name=function.name, arguments=function.arguments or "{}"))
        usage = completion.usage
        return ModelResponse(
            text=message.content or "",
            tool_calls=tuple(calls),
            finish_reason=choice.finish_reason,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            model=completion.model,
        )

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result
