"""Maps internal failures to short, user-safe messages.

Technical detail (exception text, status codes, stack traces) is logged and
only returned to callers when diagnostics are explicitly enabled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import jsonschema

from ...tools.errors import ErrorCode, ToolError
from ....data.store import (
    ConflictError,
    DataStoreError,
    RecordNotFoundError,
    StorePermissionError,
    TransientStoreError,
)
from ..types import ErrorDescriptor

__all__ = [
    "ErrorTranslator",
    "TranslatedError",
    "GENERIC_MESSAGE",
]

LOGGER = logging.getLogger(__name__)

GENERIC_MESSAGE = "I couldn't complete this. Please try again."


@dataclass(slots=True, frozen=True)
class TranslatedError:
    """A failure rendered for the end user.

    Attributes:
        code: Machine-readable error code.
        message: Short non-technical message.
        recoverable: Whether retrying or rephrasing may help.
        diagnostic: Technical detail, populated only when diagnostics are exposed.
        details: Structured, user-safe extras (candidates, retry_after).
    """

    code: str
    message: str
    recoverable: bool = True
    diagnostic: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_descriptor(self) -> ErrorDescriptor:
        details = dict(self.details)
        if self.diagnostic:
            details["diagnostic"] = self.diagnostic
        return ErrorDescriptor(
            code=self.code,
            message=self.message,
            recoverable=self.recoverable,
            details=details,
        )


# signature -> (code, message, recoverable)
_STORE_SIGNATURES: dict[str, tuple[str, str, bool]] = {
    RecordNotFoundError.signature: (
        ErrorCode.NOT_FOUND,
        "That record could not be found. It may have been removed.",
        True,
    ),
    ConflictError.signature: (
        ErrorCode.CONFLICT,
        "That record was changed by someone else. Please review it and try again.",
        True,
    ),
    TransientStoreError.signature: (
        ErrorCode.TRANSIENT_DATA_ERROR,
        "The project data is temporarily unavailable. Please try again in a moment.",
        True,
    ),
    StorePermissionError.signature: (
        ErrorCode.PERMISSION_DENIED,
        "You don't have permission to do that.",
        False,
    ),
}


class ErrorTranslator:
    """Translate exceptions into :class:`TranslatedError` values."""

    def __init__(self, *, expose_diagnostics: bool = False) -> None:
        self._expose_diagnostics = expose_diagnostics

    @property
    def expose_diagnostics(self) -> bool:
        return self._expose_diagnostics

    def translate(self, exc: BaseException, *, operation: str | None = None) -> TranslatedError:
        diagnostic = f"{type(exc).__name__}: {exc}"
        if isinstance(exc, ToolError):
            LOGGER.info("%s failed: %s", operation or "operation", diagnostic)
            details = {key: value for key, value in exc.to_dict().items() if key not in {"error", "message", "details"}}
            return self._build(exc.error_code, exc.message, exc.recoverable, diagnostic, details)

        if isinstance(exc, jsonschema.ValidationError):
            LOGGER.info("%s rejected invalid parameters: %s", operation or "operation", exc.message)
            path = ".".join(str(part) for part in exc.absolute_path)
            details = {"parameter": path} if path else {}
            return self._build(
                ErrorCode.VALIDATION_ERROR,
                "Some of the details for that request were missing or invalid.",
                True,
                diagnostic,
                details,
            )

        if isinstance(exc, DataStoreError):
            code, message, recoverable = _STORE_SIGNATURES.get(
                exc.signature,
                (ErrorCode.INTERNAL_ERROR, GENERIC_MESSAGE, True),
            )
            LOGGER.warning("%s failed with data store error: %s", operation or "operation", diagnostic)
            return self._build(code, message, recoverable, diagnostic)

        LOGGER.error("%s failed unexpectedly: %s", operation or "operation", diagnostic, exc_info=exc)
        return self._build(ErrorCode.INTERNAL_ERROR, GENERIC_MESSAGE, True, diagnostic)

    def describe(self, exc: BaseException, *, operation: str | None = None) -> ErrorDescriptor:
        """Shortcut for ``translate(exc).to_descriptor()``."""
        return self.translate(exc, operation=operation).to_descriptor()

    def _build(
        self,
        code: str,
        message: str,
        recoverable: bool,
        diagnostic: str,
        details: Mapping[str, Any] | None = None,
    ) -> TranslatedError:
        return TranslatedError(
            code=code,
            message=message,
            recoverable=recoverable,
            diagnostic=diagnostic if self._expose_diagnostics else None,
            details=dict(details or {}),
        )
