"""
Comprehensive tests for shared_utils.error_handler.

Covers every exception subclass, to_dict() serialisation, HTTP status codes,
log_exception(), and handle_error().
"""

from unittest.mock import MagicMock

from shared_utils.constants import ErrorCode
from shared_utils.error_handler import (
    AgentInUseError,
    AppException,
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    InvalidTransitionError,
    MeetingLockedError,
    NotFoundError,
    ProcessingError,
    ValidationError,
    handle_error,
    log_exception,
)


# ---------------------------------------------------------------------------
# AppException base
# ---------------------------------------------------------------------------


class TestAppException:
    def test_defaults(self) -> None:
        exc = AppException(error_code="TEST", message="boom")
        assert exc.error_code == "TEST"
        assert exc.message == "boom"
        assert exc.http_status == 500
        assert exc.context == {}
        assert str(exc) == "boom"

    def test_to_dict_structure(self) -> None:
        exc = AppException("CODE", "msg", context={"a": 1})
        assert exc.to_dict() == {"error": {"code": "CODE", "message": "msg", "context": {"a": 1}}}


# ---------------------------------------------------------------------------
# Subclass-specific tests
# ---------------------------------------------------------------------------


class TestValidationError:
    def test_code_and_status(self) -> None:
        exc = ValidationError("bad input", context={"field": "name"})
        assert exc.error_code == ErrorCode.INVALID_INPUT.value
        assert exc.http_status == 400
        assert exc.context == {"field": "name"}


class TestAuthenticationError:
    def test_code_and_status(self) -> None:
        exc = AuthenticationError()
        assert exc.error_code == ErrorCode.UNAUTHENTICATED.value
        assert exc.http_status == 401


class TestNotFoundError:
    def test_message(self) -> None:
        exc = NotFoundError("Meeting", context={"meeting_id": "m-1"})
        assert exc.message == "Meeting not found"
        assert exc.http_status == 404


class TestInvalidTransitionError:
    def test_context_carries_statuses(self) -> None:
        exc = InvalidTransitionError("cancelled", "active", context={"meeting_id": "m-1"})
        assert exc.http_status == 409
        assert exc.context == {"meeting_id": "m-1", "current": "cancelled", "target": "active"}
        assert "cancelled" in exc.message


class TestMeetingLockedError:
    def test_code_and_status(self) -> None:
        exc = MeetingLockedError("active")
        assert exc.error_code == ErrorCode.INVALID_TRANSITION.value
        assert exc.http_status == 409
        assert exc.context["status"] == "active"


class TestAgentInUseError:
    def test_context(self) -> None:
        exc = AgentInUseError("a-1", 3)
        assert exc.http_status == 409
        assert exc.context == {"agent_id": "a-1", "meeting_count": 3}


class TestConfigurationError:
    def test_code_and_status(self) -> None:
        exc = ConfigurationError("missing key")
        assert exc.error_code == ErrorCode.INVALID_CONFIG.value
        assert exc.http_status == 500


class TestProcessingError:
    def test_meeting_id_in_context(self) -> None:
        exc = ProcessingError("fail", meeting_id="m-1", context={"attempts": 3})
        assert exc.error_code == ErrorCode.PROCESSING_FAILED.value
        assert exc.context == {"attempts": 3, "meeting_id": "m-1"}

    def test_no_meeting_id(self) -> None:
        assert "meeting_id" not in ProcessingError("fail").context


class TestExternalServiceError:
    def test_code_and_status(self) -> None:
        exc = ExternalServiceError("DynamoDB", "throttled", context={"extra": 1})
        assert exc.error_code == ErrorCode.EXTERNAL_SERVICE_ERROR.value
        assert exc.http_status == 503
        assert exc.message == "DynamoDB unavailable: throttled"
        assert exc.context == {"extra": 1, "service": "DynamoDB"}


# ---------------------------------------------------------------------------
# log_exception
# ---------------------------------------------------------------------------


class TestLogException:
    def test_app_exception_uses_error_level(self) -> None:
        mock_logger = MagicMock()
        log_exception(ValidationError("oops"), logger=mock_logger)
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args[0] == "app_exception"

    def test_generic_exception_uses_error_level(self) -> None:
        mock_logger = MagicMock()
        log_exception(RuntimeError("boom"), logger=mock_logger)
        assert mock_logger.error.call_args.args[0] == "unexpected_exception"

    def test_default_logger_does_not_raise(self) -> None:
        log_exception(ValidationError("x"))
        log_exception(RuntimeError("y"))


# ---------------------------------------------------------------------------
# handle_error
# ---------------------------------------------------------------------------


class TestHandleError:
    def test_app_exception_returns_to_dict(self) -> None:
        exc = NotFoundError("Agent", context={"agent_id": "a-1"})
        result = handle_error(exc)
        assert result["error"]["code"] == ErrorCode.NOT_FOUND.value
        assert result["error"]["context"]["agent_id"] == "a-1"

    def test_generic_exception_returns_structured_dict(self) -> None:
        err = handle_error(RuntimeError("unexpected"))["error"]
        assert err["code"] == ErrorCode.EXTERNAL_SERVICE_ERROR.value
        assert "unexpected" in err["message"]
        assert err["context"]["error_type"] == "RuntimeError"

    def test_custom_default_error_code(self) -> None:
        result = handle_error(ValueError("bad"), default_error_code=ErrorCode.INVALID_INPUT.value)
        assert result["error"]["code"] == ErrorCode.INVALID_INPUT.value

    def test_handle_always_returns_dict(self) -> None:
        for exc in (
            ValidationError("a"),
            AuthenticationError(),
            NotFoundError("Meeting"),
            InvalidTransitionError("a", "b"),
            ProcessingError("d"),
            ExternalServiceError("svc", "f"),
            TypeError("h"),
        ):
            result = handle_error(exc)
            assert set(result["error"]) >= {"code", "message"}
