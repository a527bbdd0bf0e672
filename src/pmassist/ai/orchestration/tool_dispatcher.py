"""Tool Dispatcher for the dialogue loop.

Routes tool calls emitted by the model to registered tools, applying
argument validation, permission scoping, response caching and the
confirmation gate. Every failure is returned as an error result; the
dispatcher itself never raises for tool errors.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import date
from typing import Any, Callable, Mapping, Sequence

from ...data.store import DataStore
from ..tools.base import BaseTool, MutatingTool, ReadTool, ToolContext
from ..tools.entity_resolver import EntityResolver
from ..tools.errors import ErrorCode, UnsupportedOperationError, ValidationError
from ..tools.permissions import Operation, PermissionScope
from ..tools.tool_registry import ToolRegistry
from .confirmation import ConfirmationGate
from .services.container import Services
from .types import ActionState, ErrorDescriptor, SessionContext, ToolCall, ToolResult

__all__ = [
    "CONFIRMED_ARGUMENT",
    "ToolDispatcher",
]

LOGGER = logging.getLogger(__name__)

# Confirmation flags are only honoured on the explicit confirmation path.
CONFIRMED_ARGUMENT = "confirmed"


class ToolDispatcher:
    """Dispatches tool calls to appropriate implementations.

    Read tools run directly (through the response cache when cacheable).
    Mutating tools are only ever *proposed* from :meth:`dispatch`; the
    change itself happens in :meth:`confirm`, which callers reach through an
    explicit user confirmation and never through model output.

    Example:
        dispatcher = ToolDispatcher(registry, store, services)
        result = await dispatcher.dispatch(call, context)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        store: DataStore,
        services: Services,
        *,
        gate: ConfirmationGate | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._registry = registry
        self._store = store
        self._services = services
        self._gate = gate or ConfirmationGate(
            services.proposals,
            services.translator,
            proposal_ttl=services.proposal_ttl_seconds,
            clock=services.clock,
        )
        self._today = today

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def gate(self) -> ConfirmationGate:
        return self._gate

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, call: ToolCall, context: SessionContext) -> ToolResult:
        """Dispatch a single tool call.

        Args:
            call: Tool call emitted by the model.
            context: Session of the caller.

        Returns:
            ToolResult with either a payload or an error descriptor.
        """
        started = time.perf_counter()
        tool = self._registry.get(call.name)
        if tool is None:
            LOGGER.warning("Model requested unknown tool %s", call.name)
            error = UnsupportedOperationError(
                message=f"I can't do that. '{call.name}' is not an available action.",
                tool_name=call.name,
            )
            return self._failure(call, error, started)

        try:
            tool_context = self.tool_context(context)
            _require_permission(tool, tool_context)
            params = self._arguments(call)
            self._registry.validate(call.name, params)
            if isinstance(tool, MutatingTool):
                result = await self._propose(call, tool, params, context, tool_context)
            else:
                result = await self._read(call, tool, params, context, tool_context)
        except Exception as exc:  # noqa: BLE001
            return self._failure(call, exc, started)

        result.duration_ms = _elapsed_ms(started)
        LOGGER.debug(
            "Dispatched %s (cached=%s) in %.1fms",
            call.name,
            result.cached,
            result.duration_ms,
        )
        return result

    async def dispatch_many(self, calls: Sequence[ToolCall], context: SessionContext) -> list[ToolResult]:
        """Dispatch several calls from one model response.

        Read calls run concurrently, mutating calls run one at a time in
        request order. Results keep the order of ``calls``; a failing call
        never cancels its siblings.
        """
        results: list[ToolResult | None] = [None] * len(calls)
        reads: list[int] = []
        mutations: list[int] = []
        for index, call in enumerate(calls):
            registration = self._registry.get_registration(call.name)
            if registration is not None and registration.is_mutating:
                mutations.append(index)
            else:
                reads.append(index)

        if reads:
            outcomes = await asyncio.gather(
                *(self.dispatch(calls[index], context) for index in reads),
                return_exceptions=True,
            )
            for index, outcome in zip(reads, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    outcome = self._failure(calls[index], outcome, time.perf_counter())
                results[index] = outcome

        for index in mutations:
            results[index] = await self.dispatch(calls[index], context)

        return [result for result in results if result is not None]

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def confirm(
        self,
        action_name: str,
        parameters: Mapping[str, Any],
        context: SessionContext,
    ) -> ToolResult:
        """Execute a previously proposed action.

        This is the only code path that applies a mutation. ``parameters``
        must be the resolved parameters returned with the proposal.
        """
        started = time.perf_counter()
        call = ToolCall(call_id=f"confirm-{context.request_id}", name=action_name)
        tool = self._registry.get(action_name)
        if not isinstance(tool, MutatingTool):
            error = UnsupportedOperationError(
                message=f"'{action_name}' is not an action that can be confirmed.",
                tool_name=action_name,
            )
            return self._failure(call, error, started)

        try:
            tool_context = self.tool_context(context)
            _require_permission(tool, tool_context)
            params = _strip_confirmation(parameters)
            self._registry.validate(action_name, params)
            action = await self._gate.confirm(tool, params, context, tool_context)
        except Exception as exc:  # noqa: BLE001
            return self._failure(call, exc, started)

        payload = {
            "actionName": action.action_name,
            "state": action.state.value,
            "message": action.message,
        }
        if action.state is not ActionState.SUCCEEDED:
            descriptor = ErrorDescriptor(
                code=ErrorCode.ACTION_FAILED,
                message=action.message or "The change could not be made.",
                recoverable=True,
            )
            return ToolResult.failed(call.call_id, action_name, descriptor, action=action, duration_ms=_elapsed_ms(started))
        return ToolResult.ok(call.call_id, action_name, payload, action=action, duration_ms=_elapsed_ms(started))

    def abandon(self, action_name: str, parameters: Mapping[str, Any], context: SessionContext) -> ToolResult:
        """Record that the user declined a proposal."""
        call_id = f"abandon-{context.request_id}"
        action = self._gate.abandon(action_name, _strip_confirmation(parameters), context)
        payload = {"actionName": action_name, "state": action.state.value, "message": action.message}
        return ToolResult.ok(call_id, action_name, payload, action=action)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def tool_context(self, context: SessionContext) -> ToolContext:
        """Build the per-request tool context."""
        retry = self._services.retry
        return ToolContext(
            session=context,
            store=self._store,
            resolver=EntityResolver(self._store, retry),
            scope=PermissionScope.for_context(context),
            retry=retry,
            today=self._today,
        )

    async def _read(
        self,
        call: ToolCall,
        tool: ReadTool,
        params: dict[str, Any],
        context: SessionContext,
        tool_context: ToolContext,
    ) -> ToolResult:
        effective = tool.effective_params(tool_context.scope, params)
        cache = self._services.response_cache

        key: str | None = None
        if tool.cacheable:
            key = cache.build_key(tool.name, effective, context.identity)
            cached = cache.get(key)
            if cached is not None:
                return ToolResult(
                    call_id=call.call_id,
                    name=call.name,
                    success=True,
                    payload=json.loads(cached),
                    serialized=cached,
                    cached=True,
                )

        payload = await tool.read(tool_context, effective)
        result = ToolResult.ok(call.call_id, call.name, payload)
        if key is not None and result.serialized is not None:
            cache.put(key, result.serialized)
        return result

    async def _propose(
        self,
        call: ToolCall,
        tool: MutatingTool,
        params: dict[str, Any],
        context: SessionContext,
        tool_context: ToolContext,
    ) -> ToolResult:
        action = await self._gate.propose(tool, params, context, tool_context)
        payload = {
            "requiresConfirmation": True,
            "actionName": action.action_name,
            "preview": action.preview,
            "parameters": action.parameters,
        }
        if action.data:
            payload["data"] = action.data
        return ToolResult.ok(call.call_id, call.name, payload, action=action)

    def _arguments(self, call: ToolCall) -> dict[str, Any]:
        try:
            params = call.parsed_arguments()
        except ValueError as exc:
            raise ValidationError(
                message=f"Invalid parameters for {call.name}: arguments are not a JSON object",
                details={"reason": str(exc)},
            ) from exc
        if CONFIRMED_ARGUMENT in params:
            LOGGER.info("Ignoring '%s' argument supplied by the model for %s", CONFIRMED_ARGUMENT, call.name)
        return _strip_confirmation(params)

    def _failure(self, call: ToolCall, exc: BaseException, started: float) -> ToolResult:
        descriptor = self._services.translator.describe(exc, operation=call.name)
        return ToolResult.failed(call.call_id, call.name, descriptor, duration_ms=_elapsed_ms(started))


def _require_permission(tool: BaseTool, tool_context: ToolContext) -> None:
    # Runs before argument validation.
    operation = tool.operation if isinstance(tool, MutatingTool) else Operation.VIEW
    tool_context.scope.require(tool.resource, operation)


def _strip_confirmation(params: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if key != CONFIRMED_ARGUMENT}


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
