"""
Test suite for clpool.logger

Covers:
  - Terminal-safe sanitizing of log output
  - Log and date format validation with fallback to defaults
  - LogManager install / re-level / reset
  - [logging] level applied through configure_logging
"""

import logging

import pytest

from clpool.config import PoolConfig, configure_logging
from clpool.constants import DEFAULT_LOG_DATE_FORMAT, DEFAULT_LOG_FORMAT
from clpool.logger import LogManager, PoolLogHighlighter, TerminalSafeFormatter, get_logger


@pytest.fixture
def manager():
    root = logging.getLogger()
    level = root.level
    mgr = LogManager()
    mgr.reset()
    yield mgr
    mgr.reset()
    root.setLevel(level)


class TestTerminalSafeFormatter:

    def test_strips_ansi(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m") == "red"

    def test_strips_carriage_return(self):
        assert TerminalSafeFormatter.sanitize("swap ok\rforged line") == "swap okforged line"

    def test_strips_control_chars_keeps_tab_and_newline(self):
        assert TerminalSafeFormatter.sanitize("a\x00b\x07c\td\n") == "abc\td\n"

    def test_empty(self):
        assert TerminalSafeFormatter.sanitize("") == ""

    def test_format_sanitizes_message(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="clpool.test", level=logging.INFO, pathname="", lineno=0,
            msg="referrer %s", args=("\x1b[2Jevil",), exc_info=None,
        )
        assert formatter.format(record) == "referrer evil"


class TestFormatValidation:

    def test_valid_log_format(self):
        fmt = "%(levelname)s - %(message)s"
        assert LogManager.validate_log_format(fmt) == fmt

    def test_malformed_log_format(self, capsys):
        assert LogManager.validate_log_format("(message)s") == DEFAULT_LOG_FORMAT
        assert "Invalid log format" in capsys.readouterr().err

    def test_unknown_field(self):
        assert LogManager.validate_log_format("%(nonexistent)s") == DEFAULT_LOG_FORMAT

    def test_empty_log_format(self):
        assert LogManager.validate_log_format("") == DEFAULT_LOG_FORMAT

    def test_valid_date_format(self):
        assert LogManager.validate_date_format("%Y-%m-%d %H:%M") == "%Y-%m-%d %H:%M"

    def test_invalid_date_format(self, capsys):
        assert LogManager.validate_date_format("no directives") == DEFAULT_LOG_DATE_FORMAT
        assert "Invalid date format" in capsys.readouterr().err


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()

    def test_configure_installs_handlers_once(self, manager):
        manager.configure(log_level="WARNING", file_output=False)
        assert manager.is_configured
        assert manager.level == logging.WARNING
        handlers = manager.handlers
        assert len(handlers) == 1
        assert all(h in logging.getLogger().handlers for h in handlers)

        manager.configure(log_level="DEBUG", file_output=False)
        assert manager.handlers == handlers
        assert manager.level == logging.DEBUG
        assert handlers[0].level == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, manager, capsys):
        manager.configure(log_level="chatty", console_output=False, file_output=False)
        assert manager.level == logging.INFO
        assert "Unknown log level" in capsys.readouterr().err

    def test_file_output(self, manager, tmp_path):
        log_file = tmp_path / "logs" / "pool.log"
        manager.configure(log_level="INFO", log_file=log_file, console_output=False, file_output=True)
        get_logger("clpool.test").info("Collect 5/7 for %s", "\x1b[31m0x1111")
        for handler in manager.handlers:
            handler.flush()
        text = log_file.read_text()
        assert "Collect 5/7 for 0x1111" in text
        assert "\x1b" not in text

    def test_reset_detaches_handlers(self, manager):
        manager.configure(log_level="INFO", file_output=False)
        handlers = manager.handlers
        manager.reset()
        assert not manager.is_configured
        assert not any(h in logging.getLogger().handlers for h in handlers)

    def test_highlighter_spans(self):
        highlighter = PoolLogHighlighter()
        text = highlighter("Router 0x3333333333333333333333333333333333333333 at tick=-120 paid 25/75")
        styles = {span.style for span in text.spans}
        assert {"clpool.address", "clpool.tick", "clpool.amounts"} <= styles


class TestConfigureLogging:

    def test_applies_configured_level(self, manager):
        cfg = PoolConfig.from_dict({"logging": {"level": "error"}})
        assert configure_logging(cfg) is manager
        assert manager.level == logging.ERROR
        assert logging.getLogger().level == logging.ERROR
        assert not logging.getLogger("clpool.exchange.pool").isEnabledFor(logging.WARNING)

    def test_relevels_after_startup(self, manager):
        manager.configure(log_level="INFO", file_output=False)
        configure_logging(PoolConfig.from_dict({"logging": {"level": "DEBUG"}}))
        assert manager.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in manager.handlers)
        assert logging.getLogger("clpool.exchange.pool").isEnabledFor(logging.DEBUG)
