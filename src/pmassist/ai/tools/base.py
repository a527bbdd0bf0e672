"""Base classes for assistant tools.

Tools come in two variants. :class:`ReadTool` answers questions from project
data and may be cached. :class:`MutatingTool` changes project data and is
split into ``prepare`` (resolve and preview, no side effects) and ``apply``
(perform the change); only the confirmation gate calls ``apply``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, ClassVar, Mapping, Sequence

from ...data.store import DataStore, Filter
from ..orchestration.services.retry import RetryPolicy
from ..orchestration.types import SessionContext
from .entity_resolver import EntityResolver
from .permissions import PermissionScope

__all__ = [
    "ToolKind",
    "ToolSpec",
    "ToolContext",
    "ActionPlan",
    "BaseTool",
    "ReadTool",
    "MutatingTool",
]

LOGGER = logging.getLogger(__name__)


class ToolKind(str, Enum):
    READ = "read"
    MUTATING = "mutating"


# -----------------------------------------------------------------------------
# Tool Specification
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Specification for a tool's interface.

    This is used to generate the tool definition for the model API.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: JSON Schema for the tool's parameters.
        kind: Read or mutating.
        resource: Permission resource the tool touches.
        operation: Permission operation the tool performs.
    """

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    kind: ToolKind = ToolKind.READ
    resource: str = ""
    operation: str = "view"

    def to_openai_tool(self) -> dict[str, Any]:
        """Convert to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters) if self.parameters else {
                    "type": "object",
                    "properties": {},
                },
            },
        }


# -----------------------------------------------------------------------------
# Runtime context
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class ToolContext:
    """Runtime context provided to tool execution.

    Attributes:
        session: The caller's session context.
        store: Project data store.
        resolver: Entity resolver bound to the same store.
        scope: Permission view of the session.
        retry: Backoff policy wrapped around data-store reads.
        today: Returns the current date (date stamps, date ranges).
    """

    session: SessionContext
    store: DataStore
    resolver: EntityResolver
    scope: PermissionScope
    retry: RetryPolicy | None = None
    today: Callable[[], date] = date.today

    async def select(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Read records through the retry policy."""
        if self.retry is None:
            return await self.store.select(entity, filters, order_by=order_by, limit=limit)
        return await self.retry.run(self.store.select, entity, filters, order_by=order_by, limit=limit)

    async def get(self, entity: str, record_id: str) -> dict[str, Any] | None:
        if self.retry is None:
            return await self.store.get(entity, record_id)
        return await self.retry.run(self.store.get, entity, record_id)


@dataclass(slots=True)
class ActionPlan:
    """What a mutating tool will do once confirmed.

    Attributes:
        parameters: Resolved parameters (record ids instead of free text).
        preview: Human-readable description of exactly what will change.
        data: Current values shown alongside the preview.
        targets: Records the change applies to, as read during ``prepare``.
    """

    parameters: dict[str, Any]
    preview: str
    data: dict[str, Any] = field(default_factory=dict)
    targets: tuple[dict[str, Any], ...] = ()


# -----------------------------------------------------------------------------
# Tool classes
# -----------------------------------------------------------------------------


class BaseTool(ABC):
    """Abstract base class for all assistant tools.

    Subclasses declare ``name``, ``description``, a JSON-Schema
    ``parameters`` object and the permission ``resource``/``operation``.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    parameters: ClassVar[Mapping[str, Any]] = {"type": "object", "properties": {}}
    resource: ClassVar[str] = ""
    operation: ClassVar[str] = "view"
    kind: ClassVar[ToolKind] = ToolKind.READ

    @property
    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            kind=self.kind,
            resource=self.resource,
            operation=self.operation,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class ReadTool(BaseTool):
    """Base class for tools that only read project data.

    ``owner_param`` names the parameter that selects whose records to read;
    for own-only scopes it is pinned to the caller before the handler runs
    (and before the cache key is computed).
    """

    kind: ClassVar[ToolKind] = ToolKind.READ
    cacheable: ClassVar[bool] = True
    owner_param: ClassVar[str | None] = None

    def effective_params(self, scope: PermissionScope, params: Mapping[str, Any]) -> dict[str, Any]:
        if self.owner_param is None:
            return dict(params)
        return scope.narrow(self.resource, params, self.owner_param)

    @abstractmethod
    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        """Perform the read and return a JSON-serializable payload."""
        ...


class MutatingTool(BaseTool):
    """Base class for tools that change project data.

    Subclasses must implement:
    - ``prepare()``: resolve every referenced record, check business rules
      and describe the change. Must not write anything.
    - ``apply()``: perform the change described by a plan and return the
      success message.
    """

    kind: ClassVar[ToolKind] = ToolKind.MUTATING
    operation: ClassVar[str] = "edit"

    @abstractmethod
    async def prepare(self, context: ToolContext, params: dict[str, Any]) -> ActionPlan:
        ...

    @abstractmethod
    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        ...
