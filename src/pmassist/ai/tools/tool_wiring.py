"""Tool wiring: builds the default registry of query and action tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .action_tools import ACTION_TOOLS
from .base import BaseTool
from .query_tools import QUERY_TOOLS
from .tool_registry import DuplicateToolError, ToolRegistry

__all__ = [
    "ToolRegistrationResult",
    "register_tools",
    "build_default_registry",
]

LOGGER = logging.getLogger(__name__)


@dataclass
class ToolRegistrationResult:
    """Result of tool registration attempt."""

    registered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return len(self.failed) == 0

    def __str__(self) -> str:
        parts = []
        if self.registered:
            parts.append(f"registered={self.registered}")
        if self.failed:
            parts.append(f"failed={self.failed}")
        return f"ToolRegistrationResult({', '.join(parts)})"


def register_tools(registry: ToolRegistry, tools: Iterable[BaseTool]) -> ToolRegistrationResult:
    """Register each tool, collecting failures instead of stopping at the first one."""
    result = ToolRegistrationResult()
    for tool in tools:
        try:
            registry.register(tool)
        except (DuplicateToolError, TypeError, ValueError) as exc:
            LOGGER.warning("Failed to register %s: %s", tool.name or type(tool).__name__, exc)
            result.failed.append(tool.name)
            continue
        result.registered.append(tool.name)
    return result


def build_default_registry() -> ToolRegistry:
    """Create a registry holding every bundled read and mutating tool.

    Raises:
        RuntimeError: If any bundled tool fails to register.
    """
    registry = ToolRegistry()
    result = register_tools(registry, [tool_cls() for tool_cls in (*QUERY_TOOLS, *ACTION_TOOLS)])
    if not result.success:
        raise RuntimeError(f"Bundled tools failed to register: {result}")
    LOGGER.debug("Default tool registry ready with %d tools", len(registry))
    return registry
