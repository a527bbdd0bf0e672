"""Tests for the error response system."""

from __future__ import annotations

import pytest

from pmassist.ai.tools.errors import (
    ActionRejectedError,
    AmbiguousEntityError,
    ConfirmationRequiredError,
    EntityNotFoundError,
    ErrorCode,
    IterationLimitError,
    PermissionDeniedError,
    RateLimitedError,
    ToolError,
    TransientDataError,
    UnsupportedOperationError,
    UpstreamServiceError,
    ValidationError,
)


class TestErrorCode:
    """Tests for ErrorCode constants."""

    def test_lifecycle_codes(self) -> None:
        assert ErrorCode.CONFIRMATION_REQUIRED == "confirmation_required"
        assert ErrorCode.ACTION_REJECTED == "action_rejected"
        assert ErrorCode.ACTION_FAILED == "action_failed"

    def test_infrastructure_codes(self) -> None:
        assert ErrorCode.TRANSIENT_DATA_ERROR == "transient_data_error"
        assert ErrorCode.UPSTREAM_SERVICE_ERROR == "upstream_service_error"
        assert ErrorCode.RATE_LIMITED == "rate_limited"
        assert ErrorCode.ITERATION_LIMIT == "iteration_limit"


class TestToolError:
    """Tests for the base ToolError."""

    def test_is_exception_with_message(self) -> None:
        error = ToolError(error_code="custom", message="Something broke")

        assert isinstance(error, Exception)
        assert error.args == ("Something broke",)
        assert str(error) == "[custom] Something broke"

    def test_to_dict_omits_empty_fields(self) -> None:
        assert ToolError(error_code="custom", message="m").to_dict() == {"error": "custom", "message": "m"}

    def test_to_dict_includes_details_and_suggestion(self) -> None:
        error = ToolError(error_code="custom", message="m", details={"k": 1}, suggestion="retry")

        assert error.to_dict() == {"error": "custom", "message": "m", "details": {"k": 1}, "suggestion": "retry"}

    def test_can_be_raised(self) -> None:
        with pytest.raises(ToolError):
            raise ValidationError(parameter="hours")


@pytest.mark.parametrize(
    ("error", "code", "recoverable"),
    [
        (ValidationError(), ErrorCode.VALIDATION_ERROR, True),
        (UnsupportedOperationError(tool_name="x"), ErrorCode.UNSUPPORTED_OPERATION, True),
        (PermissionDeniedError(), ErrorCode.PERMISSION_DENIED, False),
        (EntityNotFoundError(), ErrorCode.NOT_FOUND, True),
        (AmbiguousEntityError(), ErrorCode.AMBIGUOUS, True),
        (ConfirmationRequiredError(), ErrorCode.CONFIRMATION_REQUIRED, True),
        (ActionRejectedError(), ErrorCode.ACTION_REJECTED, True),
        (TransientDataError(attempts=3), ErrorCode.TRANSIENT_DATA_ERROR, True),
        (UpstreamServiceError(), ErrorCode.UPSTREAM_SERVICE_ERROR, True),
        (RateLimitedError(retry_after=5), ErrorCode.RATE_LIMITED, True),
        (IterationLimitError(iterations=5), ErrorCode.ITERATION_LIMIT, True),
    ],
)
def test_error_defaults(error: ToolError, code: str, recoverable: bool) -> None:
    assert error.error_code == code
    assert error.recoverable is recoverable
    assert error.message


def test_validation_error_names_parameter() -> None:
    assert ValidationError(parameter="hours").to_dict()["parameter"] == "hours"
    assert "parameter" not in ValidationError().to_dict()


def test_ambiguous_error_lists_candidates() -> None:
    error = AmbiguousEntityError(candidates=({"id": "a", "name": "A"},))

    assert error.to_dict()["candidates"] == [{"id": "a", "name": "A"}]


def test_rate_limited_error_carries_retry_after() -> None:
    assert RateLimitedError(retry_after=30).to_dict()["retry_after"] == 30
