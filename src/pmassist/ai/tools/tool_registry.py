"""Tool registry for the assistant.

This module provides a registry for managing tool registrations and
validating tool arguments against each tool's JSON Schema.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaValidationError

from .base import BaseTool, MutatingTool, ReadTool, ToolKind, ToolSpec
from .errors import ValidationError
from .permissions import PermissionScope

__all__ = [
    "ToolRegistry",
    "ToolRegistration",
    "DuplicateToolError",
]

LOGGER = logging.getLogger(__name__)


class DuplicateToolError(Exception):
    """Raised when attempting to register a tool with a name that already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


@dataclass(slots=True)
class ToolRegistration:
    """Record of a registered tool.

    Attributes:
        name: Tool name.
        tool: The tool implementation.
        spec: Tool specification.
        validator: Compiled JSON Schema validator for the arguments.
        enabled: Whether the tool is currently enabled.
        metadata: Additional registration metadata.
    """

    name: str
    tool: BaseTool
    spec: ToolSpec
    validator: Draft202012Validator
    enabled: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_mutating(self) -> bool:
        return self.spec.kind is ToolKind.MUTATING


class ToolRegistry:
    """Registry for managing tool registrations.

    Example:
        registry = ToolRegistry()
        registry.register(GetMilestonesTool())
        registry.validate("getMilestones", {"status": "Completed"})
        tools = registry.get_openai_tools(scope=PermissionScope.for_context(context))
    """

    def __init__(self, tools: Iterable[BaseTool] = ()) -> None:
        self._tools: dict[str, ToolRegistration] = {}
        for tool in tools:
            self.register(tool)

    def register(
        self,
        tool: BaseTool,
        *,
        enabled: bool = True,
        metadata: Mapping[str, Any] | None = None,
    ) -> ToolRegistration:
        """Register a tool implementation.

        Raises:
            DuplicateToolError: If the tool name is already registered.
            TypeError: If the tool is neither a read nor a mutating tool.
        """
        name = tool.name
        if not name:
            raise ValueError("Tools must declare a name")
        if name in self._tools:
            raise DuplicateToolError(name)
        if not isinstance(tool, (ReadTool, MutatingTool)):
            raise TypeError(f"Tool '{name}' must be a ReadTool or MutatingTool")
        spec = tool.spec
        Draft202012Validator.check_schema(dict(spec.parameters))
        registration = ToolRegistration(
            name=name,
            tool=tool,
            spec=spec,
            validator=Draft202012Validator(dict(spec.parameters)),
            enabled=enabled,
            metadata=dict(metadata) if metadata else {},
        )
        self._tools[name] = registration
        LOGGER.debug("Registered %s tool: %s", spec.kind.value, name)
        return registration

    def unregister(self, name: str) -> bool:
        if name in self._tools:
            del self._tools[name]
            LOGGER.debug("Unregistered tool: %s", name)
            return True
        return False

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name.

        Returns:
            The tool if found and enabled, None otherwise.
        """
        registration = self._tools.get(name)
        if registration is None or not registration.enabled:
            return None
        return registration.tool

    def get_registration(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        registration = self._tools.get(name)
        return registration is not None and registration.enabled

    def list_names(self, *, include_disabled: bool = False) -> list[str]:
        return [
            registration.name
            for registration in self._tools.values()
            if registration.enabled or include_disabled
        ]

    def list_tools(self, *, include_disabled: bool = False) -> list[ToolSpec]:
        return [
            registration.spec
            for registration in self._tools.values()
            if registration.enabled or include_disabled
        ]

    def validate(self, name: str, arguments: Mapping[str, Any]) -> None:
        """Validate ``arguments`` against the tool's schema.

        Raises:
            ValidationError: With the first schema violation, described for the user.
        """
        registration = self._tools.get(name)
        if registration is None:
            raise KeyError(name)
        errors = sorted(registration.validator.iter_errors(dict(arguments)), key=lambda err: list(err.path))
        if not errors:
            return
        first: SchemaValidationError = errors[0]
        parameter = ".".join(str(part) for part in first.absolute_path) or None
        LOGGER.debug("Arguments for %s failed validation: %s", name, first.message)
        raise ValidationError(
            message=f"Invalid parameters for {name}: {first.message}",
            parameter=parameter,
            details={"violations": len(errors)},
        )

    def get_openai_tools(self, *, scope: PermissionScope | None = None) -> list[dict[str, Any]]:
        """Get tool definitions in OpenAI format.

        Args:
            scope: When given, only tools the caller's role may use are included.
        """
        tools: list[dict[str, Any]] = []
        for registration in self._tools.values():
            if not registration.enabled:
                continue
            if scope is not None and not scope.allows(registration.spec.resource, registration.spec.operation):
                continue
            tools.append(registration.spec.to_openai_tool())
        return tools

    def enable(self, name: str) -> bool:
        registration = self._tools.get(name)
        if registration is None:
            return False
        registration.enabled = True
        return True

    def disable(self, name: str) -> bool:
        registration = self._tools.get(name)
        if registration is None:
            return False
        registration.enabled = False
        return True

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
