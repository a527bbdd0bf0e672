"""Registry of assistant tools, permission scoping and entity resolution."""

from . import (
    action_tools,
    base,
    entity_resolver,
    errors,
    permissions,
    query_tools,
    tool_registry,
    tool_wiring,
)
from .tool_wiring import build_default_registry

__all__ = [
    "action_tools",
    "base",
    "entity_resolver",
    "errors",
    "permissions",
    "query_tools",
    "tool_registry",
    "tool_wiring",
    "build_default_registry",
]
