"""Conversation Runner: the bounded dialogue loop.

The runner sends the conversation and the caller's tool declarations to the
model, dispatches any requested tool calls, feeds the results back and
repeats until the model answers in plain text or the iteration ceiling is
reached. It never changes data itself; every side effect happens inside a
dispatched tool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable, Sequence

from ..prompts import build_system_prompt
from ..tools.errors import IterationLimitError
from ..tools.permissions import PermissionScope
from ..tools.tool_registry import ToolRegistry
from .tool_dispatcher import ToolDispatcher
from .types import (
    Message,
    PendingAction,
    SessionContext,
    ToolCallRecord,
    TurnOutput,
    TurnUsage,
)

if TYPE_CHECKING:
    from ...services.settings import Settings
    from ..client import ModelClient

__all__ = [
    "ConversationRunner",
    "RunnerConfig",
    "PromptBuilder",
    "truncate_history",
]

LOGGER = logging.getLogger(__name__)

PromptBuilder = Callable[[SessionContext, ToolRegistry], str]

# Shown when the model finishes without any text.
EMPTY_ANSWER = "I don't have anything to add to that."


# -----------------------------------------------------------------------------
# Runner Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class RunnerConfig:
    """Configuration for the conversation runner.

    Attributes:
        max_iterations: Maximum number of model calls in one turn.
        history_limit: Number of most recent user/assistant messages sent.
        temperature: Sampling temperature for every completion.
        max_completion_tokens: Completion cap per model call.
    """

    max_iterations: int = 5
    history_limit: int = 10
    temperature: float = 0.2
    max_completion_tokens: int | None = 1024

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RunnerConfig":
        return cls(
            max_iterations=settings.max_tool_iterations,
            history_limit=settings.history_limit,
            temperature=settings.temperature,
            max_completion_tokens=settings.max_completion_tokens,
        )


def truncate_history(conversation: Sequence[Message], limit: int) -> list[Message]:
    """Keep the last ``limit`` user/assistant messages.

    Tool plumbing from earlier turns is dropped; it only makes sense inside
    the turn that produced it.
    """
    dialogue = [
        message
        for message in conversation
        if message.role in ("user", "assistant") and not message.tool_calls and message.content
    ]
    return dialogue[-limit:] if limit > 0 else []


# -----------------------------------------------------------------------------
# Conversation Runner
# -----------------------------------------------------------------------------


class ConversationRunner:
    """Drives one turn of the dialogue loop.

    Example:
        >>> runner = ConversationRunner(client, dispatcher)
        >>> output = await runner.run([Message.user("Show my timesheets")], context)
        >>> print(output.message)
    """

    def __init__(
        self,
        client: "ModelClient",
        dispatcher: ToolDispatcher,
        registry: ToolRegistry | None = None,
        *,
        config: RunnerConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._registry = registry or dispatcher.registry
        self._config = config or RunnerConfig()
        self._prompt_builder = prompt_builder
        self._today = today

    @property
    def config(self) -> RunnerConfig:
        return self._config

    @property
    def dispatcher(self) -> ToolDispatcher:
        return self._dispatcher

    async def run(self, conversation: Sequence[Message], context: SessionContext) -> TurnOutput:
        """Run the loop until the model gives a final answer.

        Args:
            conversation: Prior user/assistant messages, newest last.
            context: Session of the caller.

        Returns:
            TurnOutput with the final message, proposed actions and usage.

        Raises:
            IterationLimitError: The model still requested tools after
                ``max_iterations`` calls.
            UpstreamServiceError: The model call failed. Never retried here.
        """
        config = self._config
        scope = PermissionScope.for_context(context)
        tools = self._registry.get_openai_tools(scope=scope)
        messages: list[Message] = [Message.system(self._system_prompt(context))]
        messages.extend(truncate_history(conversation, config.history_limit))

        usage = TurnUsage()
        records: list[ToolCallRecord] = []
        actions: list[PendingAction] = []

        LOGGER.debug(
            "Starting turn %s with %d message(s), %d tool(s), max_iterations=%d",
            context.request_id,
            len(messages),
            len(tools),
            config.max_iterations,
        )

        for iteration in range(1, config.max_iterations + 1):
            response = await self._client.complete(
                messages,
                tools=tools or None,
                temperature=config.temperature,
                max_completion_tokens=config.max_completion_tokens,
            )
            usage.add(response)

            if not response.has_tool_calls:
                LOGGER.info(
                    "Turn %s finished after %d iteration(s), %d tool call(s)",
                    context.request_id,
                    iteration,
                    usage.tool_calls,
                )
                return TurnOutput(
                    message=response.text.strip() or EMPTY_ANSWER,
                    actions=tuple(actions),
                    tool_records=tuple(records),
                    usage=usage,
                    iterations=iteration,
                )

            results = await self._dispatcher.dispatch_many(response.tool_calls, context)
            usage.tool_calls += len(results)
            messages.append(Message.assistant(response.text, response.tool_calls))
            for call, result in zip(response.tool_calls, results):
                messages.append(Message.tool(result.content, call.call_id, name=call.name))
                records.append(
                    ToolCallRecord(
                        call_id=call.call_id,
                        name=call.name,
                        arguments=call.arguments,
                        success=result.success,
                        cached=result.cached,
                        error_code=result.error.code if result.error else None,
                        duration_ms=result.duration_ms,
                    )
                )
                if result.action is not None:
                    actions.append(result.action)

        LOGGER.warning(
            "Turn %s reached max iterations (%d)",
            context.request_id,
            config.max_iterations,
        )
        raise IterationLimitError(iterations=config.max_iterations)

    def _system_prompt(self, context: SessionContext) -> str:
        if self._prompt_builder is not None:
            return self._prompt_builder(context, self._registry)
        return build_system_prompt(context, self._registry, today=self._today())
