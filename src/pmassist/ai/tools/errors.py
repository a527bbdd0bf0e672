"""Standardized error types for assistant tools.

This module provides a hierarchy of error classes with consistent
JSON serialization for tool responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Sequence


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in tool responses."""

    # Request/parameter errors
    VALIDATION_ERROR = "validation_error"
    UNSUPPORTED_OPERATION = "unsupported_operation"

    # Access errors
    PERMISSION_DENIED = "permission_denied"

    # Entity resolution errors
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"

    # Action lifecycle errors
    CONFIRMATION_REQUIRED = "confirmation_required"
    ACTION_REJECTED = "action_rejected"
    ACTION_FAILED = "action_failed"
    CONFLICT = "conflict"

    # Infrastructure errors
    TRANSIENT_DATA_ERROR = "transient_data_error"
    UPSTREAM_SERVICE_ERROR = "upstream_service_error"
    RATE_LIMITED = "rate_limited"
    ITERATION_LIMIT = "iteration_limit"

    # General errors
    INTERNAL_ERROR = "internal_error"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for all tool and orchestration errors.

    Provides consistent JSON serialization and error categorization.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description, safe to show the end user.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    # Whether the user can reasonably retry or rephrase
    recoverable: ClassVar[bool] = True

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON tool responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Request Errors
# -----------------------------------------------------------------------------

@dataclass
class ValidationError(ToolError):
    """Malformed or missing parameters. Never retried."""

    error_code: str = field(default=ErrorCode.VALIDATION_ERROR)
    message: str = field(default="The request is missing required information")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the parameters against the tool schema")

    parameter: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter:
            result["parameter"] = self.parameter
        return result


@dataclass
class UnsupportedOperationError(ToolError):
    """Raised when a tool name is not registered."""

    error_code: str = field(default=ErrorCode.UNSUPPORTED_OPERATION)
    message: str = field(default="That operation is not supported")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use one of the declared tools")

    tool_name: str | None = field(default=None)


# -----------------------------------------------------------------------------
# Access Errors
# -----------------------------------------------------------------------------

@dataclass
class PermissionDeniedError(ToolError):
    """Role or ownership scope violation. Never retried."""

    error_code: str = field(default=ErrorCode.PERMISSION_DENIED)
    message: str = field(default="You don't have permission to do that")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    resource: str | None = field(default=None)
    operation: str | None = field(default=None)

    recoverable: ClassVar[bool] = False


# -----------------------------------------------------------------------------
# Entity Resolution Errors
# -----------------------------------------------------------------------------

@dataclass
class EntityNotFoundError(ToolError):
    """No record matched the supplied identifier."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="No matching record was found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the name or reference and try again")

    entity_type: str | None = field(default=None)
    identifier: str | None = field(default=None)


@dataclass
class AmbiguousEntityError(ToolError):
    """More than one record matched; the user has to pick one."""

    error_code: str = field(default=ErrorCode.AMBIGUOUS)
    message: str = field(default="More than one record matches")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Ask the user which one they mean")

    entity_type: str | None = field(default=None)
    identifier: str | None = field(default=None)
    candidates: Sequence[dict[str, Any]] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["candidates"] = [dict(candidate) for candidate in self.candidates]
        return result


# -----------------------------------------------------------------------------
# Action Lifecycle Errors
# -----------------------------------------------------------------------------

@dataclass
class ConfirmationRequiredError(ToolError):
    """A confirmation arrived without a matching proposal."""

    error_code: str = field(default=ErrorCode.CONFIRMATION_REQUIRED)
    message: str = field(default="This change has not been proposed with these details, so it was not made")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Ask for the change again to get a fresh preview")

    action_name: str | None = field(default=None)


@dataclass
class ActionRejectedError(ToolError):
    """The record's current state does not allow the requested change."""

    error_code: str = field(default=ErrorCode.ACTION_REJECTED)
    message: str = field(default="That change can't be made")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


# -----------------------------------------------------------------------------
# Infrastructure Errors
# -----------------------------------------------------------------------------

@dataclass
class TransientDataError(ToolError):
    """The data store kept failing with transient errors after all retries."""

    error_code: str = field(default=ErrorCode.TRANSIENT_DATA_ERROR)
    message: str = field(default="The project data is temporarily unavailable")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Try again in a moment")

    attempts: int = field(default=0)


@dataclass
class UpstreamServiceError(ToolError):
    """The language model service failed. Surfaced immediately."""

    error_code: str = field(default=ErrorCode.UPSTREAM_SERVICE_ERROR)
    message: str = field(default="The assistant service is temporarily unavailable")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Try again in a moment")

    status_code: int | None = field(default=None)


@dataclass
class RateLimitedError(ToolError):
    """The caller exceeded the per-window request quota."""

    error_code: str = field(default=ErrorCode.RATE_LIMITED)
    message: str = field(default="Too many requests. Please wait a moment.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    retry_after: int = field(default=0)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["retry_after"] = self.retry_after
        return result


@dataclass
class IterationLimitError(ToolError):
    """The dialogue loop hit its iteration ceiling without a final answer."""

    error_code: str = field(default=ErrorCode.ITERATION_LIMIT)
    message: str = field(default="I couldn't complete that request")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Try a simpler or more specific request")

    iterations: int = field(default=0)


__all__ = [
    "ErrorCode",
    "ToolError",
    "ValidationError",
    "UnsupportedOperationError",
    "PermissionDeniedError",
    "EntityNotFoundError",
    "AmbiguousEntityError",
    "ConfirmationRequiredError",
    "ActionRejectedError",
    "TransientDataError",
    "UpstreamServiceError",
    "RateLimitedError",
    "IterationLimitError",
]
