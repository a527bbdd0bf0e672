"""Confirmation gate for mutating tools.

A mutation always happens in two steps. ``propose`` resolves the request,
renders a preview and records the proposal server-side under a fingerprint
of (identity, project, action, resolved parameters). ``confirm`` only
executes when a proposal with exactly that fingerprint exists, so a
confirmation from a different user, for different parameters or without a
prior proposal is refused. Proposals are single-use and expire after
``proposal_ttl`` seconds.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping

from ..tools.base import MutatingTool, ToolContext
from ..tools.errors import ConfirmationRequiredError
from .services.error_translator import ErrorTranslator
from .services.kv_store import Clock, KeyValueStore
from .types import ActionState, PendingAction, SessionContext

__all__ = [
    "ConfirmationGate",
    "StoredProposal",
    "fingerprint",
]

LOGGER = logging.getLogger(__name__)


def fingerprint(context: SessionContext, action_name: str, parameters: Mapping[str, Any]) -> str:
    """Stable digest binding a proposal to who asked, where, and for what."""
    hasher = hashlib.sha256()
    hasher.update(context.identity.encode("utf-8"))
    hasher.update(b"|")
    hasher.update(context.project_id.encode("utf-8"))
    hasher.update(b"|")
    hasher.update(action_name.encode("utf-8"))
    hasher.update(b"|")
    hasher.update(json.dumps(dict(parameters), sort_keys=True, default=str).encode("utf-8"))
    return hasher.hexdigest()


@dataclass(slots=True, frozen=True)
class StoredProposal:
    action_name: str
    preview: str
    proposed_at: float
    expires_at: float


class ConfirmationGate:
    """Two-phase propose/confirm state machine for mutating tools."""

    KEY_PREFIX = "proposal:"

    def __init__(
        self,
        store: KeyValueStore,
        translator: ErrorTranslator | None = None,
        *,
        proposal_ttl: float = 900.0,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._translator = translator or ErrorTranslator()
        self._proposal_ttl = max(1.0, float(proposal_ttl))
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()

    async def propose(
        self,
        tool: MutatingTool,
        params: Mapping[str, Any],
        context: SessionContext,
        tool_context: ToolContext,
    ) -> PendingAction:
        """Resolve and preview a mutation without changing any data.

        Raises:
            ToolError: Permission, resolution or business-rule failures.
        """
        tool_context.scope.require(tool.resource, tool.operation)
        plan = await tool.prepare(tool_context, dict(params))
        token = fingerprint(context, tool.name, plan.parameters)
        now = self._clock()
        proposal = StoredProposal(
            action_name=tool.name,
            preview=plan.preview,
            proposed_at=now,
            expires_at=now + self._proposal_ttl,
        )
        self._store.set(self.KEY_PREFIX + token, proposal, ttl_seconds=self._proposal_ttl)
        LOGGER.info("Proposed %s for %s (request %s)", tool.name, context.user.user_id, context.request_id)
        return PendingAction(
            action_name=tool.name,
            parameters=dict(plan.parameters),
            preview=plan.preview,
            confirmed=False,
            state=ActionState.PROPOSED,
            token=token,
            data=dict(plan.data),
        )

    async def confirm(
        self,
        tool: MutatingTool,
        params: Mapping[str, Any],
        context: SessionContext,
        tool_context: ToolContext,
    ) -> PendingAction:
        """Execute a previously proposed mutation exactly once.

        Raises:
            PermissionDeniedError: The caller may no longer perform the action.
            ConfirmationRequiredError: No live proposal matches these parameters
                for this identity.
        """
        tool_context.scope.require(tool.resource, tool.operation)
        token = fingerprint(context, tool.name, params)
        self._take(token, tool.name)

        action = PendingAction(
            action_name=tool.name,
            parameters=dict(params),
            preview="",
            confirmed=True,
            state=ActionState.CONFIRMED,
            token=token,
        )
        try:
            plan = await tool.prepare(tool_context, dict(params))
            action.preview = plan.preview
            action.data = dict(plan.data)
            if fingerprint(context, tool.name, plan.parameters) != token:
                raise ConfirmationRequiredError(
                    message="The details of this change no longer match what was proposed, so it was not made",
                    action_name=tool.name,
                )
            action.message = await tool.apply(tool_context, plan)
        except Exception as exc:  # noqa: BLE001
            translated = self._translator.translate(exc, operation=tool.name)
            action.state = ActionState.FAILED
            action.message = translated.message
            return action

        action.state = ActionState.SUCCEEDED
        LOGGER.info("Executed %s for %s (request %s)", tool.name, context.user.user_id, context.request_id)
        return action

    def abandon(self, action_name: str, params: Mapping[str, Any], context: SessionContext) -> PendingAction:
        """Drop a proposal the user declined. Nothing is executed."""
        token = fingerprint(context, action_name, params)
        existed = self._store.expire(self.KEY_PREFIX + token)
        LOGGER.debug("Abandoned %s (proposal %s)", action_name, "found" if existed else "missing")
        return PendingAction(
            action_name=action_name,
            parameters=dict(params),
            preview="",
            confirmed=False,
            state=ActionState.ABANDONED,
            message="Okay, I won't make that change.",
            token=token,
        )

    def has_proposal(self, action_name: str, params: Mapping[str, Any], context: SessionContext) -> bool:
        return self._live(self._store.get(self.KEY_PREFIX + fingerprint(context, action_name, params))) is not None

    def _take(self, token: str, action_name: str) -> StoredProposal:
        key = self.KEY_PREFIX + token
        with self._lock:
            proposal = self._live(self._store.get(key))
            if proposal is not None:
                self._store.expire(key)
        if proposal is None or proposal.action_name != action_name:
            LOGGER.info("Rejected confirmation of %s without a matching proposal", action_name)
            raise ConfirmationRequiredError(action_name=action_name)
        return proposal

    def _live(self, value: Any) -> StoredProposal | None:
        if not isinstance(value, StoredProposal):
            return None
        if self._clock() >= value.expires_at:
            return None
        return value
