"""System prompt for the project assistant."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from .orchestration.types import SessionContext
from .tools.permissions import PermissionScope

if TYPE_CHECKING:
    from .tools.tool_registry import ToolRegistry

__all__ = ["build_system_prompt"]

_CONFIRMATION_RULES = """\
Changing data always takes two steps:
1. Call the action tool. It only returns a preview of the change; nothing is saved yet.
2. Show the preview to the user and ask them to confirm. The application sends the
   confirmation itself. Never claim a change was made until the user has confirmed it.
If a name matches more than one record, list the candidates and ask which one the user means.
If a tool reports an error, explain it briefly in plain language."""


def build_system_prompt(
    context: SessionContext,
    registry: "ToolRegistry",
    *,
    today: date | None = None,
) -> str:
    """Render the system prompt for one request.

    Only tools the caller's role may use are mentioned.
    """
    scope = PermissionScope.for_context(context)
    tool_names = [spec.name for spec in registry.list_tools() if scope.allows(spec.resource, spec.operation)]
    user = context.user
    who = user.display_name or user.user_id
    lines = [
        "You are a project assistant helping people work with their project data.",
        f"Project: {context.project_id}",
        f"User: {who} (role: {user.role})",
        f"Today: {(today or date.today()).isoformat()}",
        "",
        "Answer questions using the tools. Keep answers short and factual.",
        "Available tools: " + (", ".join(tool_names) if tool_names else "none"),
        "",
        _CONFIRMATION_RULES,
    ]
    return "\n".join(lines)
