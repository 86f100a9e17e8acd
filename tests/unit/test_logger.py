"""
Unit tests for src/common/logger.py and log_on_exception.

Tests cover:
- Session/component prefixes on log messages
- Debug mode handling
- Exceptions logged and re-raised by log_on_exception
"""

import logging

import pytest

from src.common.error_handling import log_on_exception
from src.common.logger import get_logger, is_debug_mode, set_debug_mode


# ===== TESTS: SessionLogger =====

class TestSessionLogger:
    """Tests for message prefixes."""

    def test_prefixes_session_and_component(self, caplog):
        caplog.set_level(logging.INFO, logger="tests.logger.prefix")
        log = get_logger("tests.logger.prefix", session_id="abcdef123456", component="engine")

        log.info("turn processed")

        assert caplog.records[-1].getMessage() == "[session:abcdef12] [engine] turn processed"
        assert caplog.records[-1].name == "tests.logger.prefix"

    def test_component_only(self, caplog):
        caplog.set_level(logging.INFO, logger="tests.logger.component")
        get_logger("tests.logger.component", component="gateway").error("sin sesión")

        assert caplog.records[-1].getMessage() == "[gateway] sin sesión"
        assert caplog.records[-1].levelno == logging.ERROR

    def test_no_prefix_without_context(self, caplog):
        caplog.set_level(logging.INFO, logger="tests.logger.plain")
        get_logger("tests.logger.plain").warning("sin contexto")

        assert caplog.records[-1].getMessage() == "sin contexto"

    def test_debug_mode_lowers_level(self):
        previous = is_debug_mode()
        try:
            set_debug_mode(True)
            assert is_debug_mode() is True
            assert get_logger("tests.logger.debug").logger.level == logging.DEBUG
        finally:
            set_debug_mode(previous)

    def test_level_untouched_without_debug_mode(self):
        previous = is_debug_mode()
        try:
            set_debug_mode(False)
            assert get_logger("tests.logger.nodebug").logger.level == logging.NOTSET
        finally:
            set_debug_mode(previous)


# ===== TESTS: log_on_exception =====

class TestLogOnException:
    """Tests for the logging context manager."""

    def test_logs_and_reraises(self, caplog):
        caplog.set_level(logging.ERROR, logger="tests.logger.exc")
        logger = logging.getLogger("tests.logger.exc")

        with pytest.raises(RuntimeError):
            with log_on_exception(logger, "session save", level=logging.ERROR):
                raise RuntimeError("store unavailable")

        assert caplog.records[-1].getMessage() == "[session save] Failed: store unavailable"

    def test_silent_on_success(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tests.logger.ok")

        with log_on_exception(logging.getLogger("tests.logger.ok"), "noop"):
            pass

        assert caplog.records == []
