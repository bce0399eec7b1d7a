"""Tests for logger module.

Tests logging configuration, handlers, and structured relay logging.
"""

from __future__ import annotations

import logging
import logging.handlers

from unittest.mock import Mock, patch

from cortex_chat.api.middleware.request_context import RequestContext, clear_request_context, set_request_context
from cortex_chat.utils.logger import ChatLogger, ErrorFilter, InfoFilter, setup_logging


def _record(level: int) -> logging.LogRecord:
    return logging.LogRecord(name="test", level=level, pathname="", lineno=0, msg="test", args=(), exc_info=None)


class TestFilters:
    """Tests for level filters on the JSON file handlers."""

    def test_info_filter_blocks_debug(self) -> None:
        assert InfoFilter().filter(_record(logging.DEBUG)) is False
        assert InfoFilter().filter(_record(logging.INFO)) is True
        assert InfoFilter().filter(_record(logging.ERROR)) is True

    def test_error_filter_only_errors(self) -> None:
        assert ErrorFilter().filter(_record(logging.WARNING)) is False
        assert ErrorFilter().filter(_record(logging.ERROR)) is True
        assert ErrorFilter().filter(_record(logging.CRITICAL)) is True


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_with_debug_enabled(self) -> None:
        """Console handler drops to DEBUG when debug is on."""
        logger = setup_logging("test-debug", debug=True)

        console_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert console_handlers
        assert console_handlers[0].level == logging.DEBUG

    def test_setup_logging_with_debug_disabled(self) -> None:
        logger = setup_logging("test-no-debug", debug=False)

        console_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert console_handlers[0].level == logging.INFO

    def test_setup_logging_respects_debug_env_var(self) -> None:
        with patch.dict("os.environ", {"DEBUG": "true"}):
            logger = setup_logging("test-env-debug")

        console_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert console_handlers[0].level == logging.DEBUG

    def test_setup_logging_replaces_handlers(self) -> None:
        """Console, relay and error handlers replace whatever was attached."""
        logger = logging.getLogger("test-clear-handlers")
        logger.addHandler(logging.NullHandler())

        logger = setup_logging("test-clear-handlers")

        assert not any(isinstance(h, logging.NullHandler) for h in logger.handlers)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert sorted(h.baseFilename.rsplit("/", 1)[-1] for h in file_handlers) == ["errors.jsonl", "relay.jsonl"]


class TestChatLogger:
    """Tests for ChatLogger class."""

    def test_chat_logger_initialization(self) -> None:
        chat_logger = ChatLogger("test-chat-logger")

        assert chat_logger.logger.name == "test-chat-logger"
        assert len(chat_logger.instance_id) == 8

    def test_info_adds_instance_id(self) -> None:
        chat_logger = ChatLogger("test-info")
        chat_logger.logger = Mock()

        chat_logger.info("Test message", extra_key="extra_value")

        extra = chat_logger.logger.info.call_args.kwargs["extra"]
        assert extra["instance_id"] == chat_logger.instance_id
        assert extra["extra_key"] == "extra_value"

    def test_error_passes_exc_info(self) -> None:
        chat_logger = ChatLogger("test-error")
        chat_logger.logger = Mock()

        chat_logger.error("Test error", exc_info=True)

        assert chat_logger.logger.error.call_args.kwargs["exc_info"] is True

    def test_request_context_is_attached(self) -> None:
        """Log lines inside a request carry its id and resource ids."""
        chat_logger = ChatLogger("test-context")
        chat_logger.logger = Mock()
        set_request_context(RequestContext(request_id="req_abc", path="/api/v1/chat", method="POST", thread_id="42"))
        try:
            chat_logger.warning("Inside request")
        finally:
            clear_request_context()

        extra = chat_logger.logger.warning.call_args.kwargs["extra"]
        assert extra["request_id"] == "req_abc"
        assert extra["thread_id"] == "42"

    def test_explicit_fields_win_over_context(self) -> None:
        chat_logger = ChatLogger("test-context-override")
        chat_logger.logger = Mock()
        set_request_context(RequestContext(request_id="req_abc", file_id="from-path"))
        try:
            chat_logger.info("Stored", file_id="explicit")
        finally:
            clear_request_context()

        assert chat_logger.logger.info.call_args.kwargs["extra"]["file_id"] == "explicit"


class TestRelayTurnLogging:
    """Tests for log_relay_turn."""

    def test_content_hidden_by_default(self) -> None:
        chat_logger = ChatLogger("test-relay-hidden")
        chat_logger.logger = Mock()

        with patch.object(chat_logger, "_should_log_content", return_value=False):
            chat_logger.log_relay_turn(
                user_text="my secret question",
                thread_id=1234,
                parent_message_id=0,
                mode="live",
                text_events=3,
                outcome="done",
                duration_ms=250.4,
            )

        message = chat_logger.logger.info.call_args.args[0]
        extra = chat_logger.logger.info.call_args.kwargs["extra"]
        assert "secret question" not in message
        assert "[HIDDEN]" in message
        assert "[3 text events]" in message
        assert "[250ms]" in message
        assert extra["outcome"] == "done"
        assert extra["chars_input"] == len("my secret question")

    def test_content_is_redacted_and_truncated(self) -> None:
        chat_logger = ChatLogger("test-relay-content")
        chat_logger.logger = Mock()

        with patch.object(chat_logger, "_should_log_content", return_value=True):
            chat_logger.log_relay_turn(
                user_text="mail jane@example.com " + "x" * 100,
                thread_id=None,
                parent_message_id=0,
                mode="mock",
                text_events=1,
                outcome="done",
                agent_id="2",
            )

        message = chat_logger.logger.info.call_args.args[0]
        extra = chat_logger.logger.info.call_args.kwargs["extra"]
        assert "[EMAIL]" in message
        assert "jane@example.com" not in message
        assert "..." in message
        assert extra["agent_id"] == "2"
        assert extra["mode"] == "mock"

    def test_global_logger_instance(self) -> None:
        from cortex_chat.utils.logger import logger as global_logger

        assert isinstance(global_logger, ChatLogger)
