"""
Tests for shared_utils.logging_utils.

Covers get_scoped_logger(), bind_log_context(), log_execution() and
ContextualLogger.
"""

import pytest
import structlog

from shared_utils.constants import LogScope
from shared_utils.logging_utils import (
    ContextualLogger,
    bind_log_context,
    configure_log_level,
    get_scoped_logger,
    log_execution,
)


# ---------------------------------------------------------------------------
# get_scoped_logger
# ---------------------------------------------------------------------------


class TestGetScopedLogger:
    def test_returns_bound_logger(self) -> None:
        logger = get_scoped_logger(LogScope.API)
        assert callable(getattr(logger, "info", None))
        assert callable(getattr(logger, "critical", None))

    def test_different_scopes(self) -> None:
        for scope in (LogScope.API, LogScope.LIFECYCLE, LogScope.WEBHOOK, LogScope.WORKER):
            assert get_scoped_logger(scope) is not None


def test_configure_log_level_accepts_unknown_level() -> None:
    configure_log_level("not-a-level")


# ---------------------------------------------------------------------------
# bind_log_context
# ---------------------------------------------------------------------------


class TestBindLogContext:
    def test_binds_and_unbinds(self) -> None:
        with bind_log_context(meeting_id="m-1"):
            assert structlog.contextvars.get_contextvars()["meeting_id"] == "m-1"
        assert "meeting_id" not in structlog.contextvars.get_contextvars()

    def test_unbinds_on_error(self) -> None:
        with pytest.raises(ValueError):
            with bind_log_context(meeting_id="m-2"):
                raise ValueError("boom")
        assert "meeting_id" not in structlog.contextvars.get_contextvars()


# ---------------------------------------------------------------------------
# log_execution decorator
# ---------------------------------------------------------------------------


class TestLogExecution:
    def test_passes_through_return_value(self) -> None:
        @log_execution(scope=LogScope.ADAPTER)
        def add(a: int, b: int) -> int:
            return a + b

        assert add(2, 3) == 5

    def test_propagates_exception(self) -> None:
        @log_execution(scope=LogScope.ADAPTER)
        def boom() -> None:
            raise ValueError("oops")

        with pytest.raises(ValueError, match="oops"):
            boom()

    def test_preserves_function_name(self) -> None:
        @log_execution(scope=LogScope.ADAPTER)
        def my_func() -> None:
            pass

        assert my_func.__name__ == "my_func"


# ---------------------------------------------------------------------------
# ContextualLogger
# ---------------------------------------------------------------------------


class TestContextualLogger:
    def test_all_levels_callable(self) -> None:
        cl = ContextualLogger(scope=LogScope.PARSER)
        for method_name in ("info", "debug", "warning", "error", "critical"):
            assert callable(getattr(cl, method_name))

    def test_info_does_not_raise(self) -> None:
        ContextualLogger(scope=LogScope.PARSER).info("test_event", key="value")

    def test_scope_stored(self) -> None:
        assert ContextualLogger(scope=LogScope.WORKER).scope == LogScope.WORKER
