"""
clpool Logging
==============

Library modules log through ``logging.getLogger(__name__)`` and never touch
handlers. A host installs the output once, either with
:func:`clpool.config.configure_logging` (which applies the ``[logging]``
section of clpool.toml) or with ``LogManager().configure()``.

Output goes to a rich console that colours addresses, ticks and ``a/b``
amount pairs, plus an optional rotating file (``LOG_TO_FILE``). Every line is
passed through :class:`TerminalSafeFormatter` first.

Usage:
    >>> from clpool.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Pool initialized")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_LEVELS,
    LOG_MAX_FILE_SIZE,
    LOG_TO_FILE,
)

LOG_FILE_PATH = Path("logs") / "clpool.log"

POOL_THEME = Theme({
    "clpool.address":       "cyan",
    "clpool.tick":          "yellow",
    "clpool.amounts":       "bold white",
    "clpool.level_warning": "bold yellow",
    "clpool.level_error":   "bold red",
})


def _warn(message: str) -> None:
    # logging is not usable yet while its own settings are being checked
    print(f"{time.strftime(DEFAULT_LOG_DATE_FORMAT)} - clpool.logger - {message}", file=sys.stderr)


def _numeric_level(level: str) -> int:
    name = str(level).upper()
    if name not in LOG_LEVELS:
        _warn(f"Unknown log level {level!r}, using INFO")
        return logging.INFO
    return logging.getLevelName(name)


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escape sequences and control characters.

    Tab and newline survive. Referrer and recipient strings are caller
    supplied, so they must not be able to move the cursor or forge a line.
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"       # CSI sequences (colours, cursor moves)
        r"|\x1b[@-Z\\-_]"                # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"     # control chars, \r included
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._unsafe_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class PoolLogHighlighter(RegexHighlighter):
    """Rich highlighter for pool log lines."""

    base_style = "clpool."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<tick>\btick[= ]-?\d+)",
        r"(?P<amounts>\b\d+/\d+\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\b(?:ERROR|CRITICAL)\b)",
    ]


class LogManager:
    """
    Process-wide logging setup (singleton).

    The first :meth:`configure` installs handlers on the root logger. Later
    calls only move the level, so a level read from clpool.toml can be
    applied after the host already started logging.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._handlers = []
                instance._level = None
                cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._level is not None

    @property
    def level(self) -> Optional[int]:
        return self._level

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._handlers)

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """Return ``log_format`` if it renders a record, else the default format."""
        if not log_format:
            return DEFAULT_LOG_FORMAT
        record = logging.LogRecord(
            name="clpool", level=logging.INFO, pathname="", lineno=0,
            msg="check", args=(), exc_info=None,
        )
        try:
            logging.Formatter(fmt=log_format, validate=True).format(record)
        except (ValueError, KeyError, TypeError) as e:
            _warn(f"Invalid log format {log_format!r} ({e}), using default")
            return DEFAULT_LOG_FORMAT
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Return ``date_format`` if it holds at least one strftime directive."""
        if date_format and re.search(r"%[A-Za-z]", date_format):
            try:
                time.strftime(date_format)
                return date_format
            except ValueError:
                pass
        if date_format:
            _warn(f"Invalid date format {date_format!r}, using default")
        return DEFAULT_LOG_DATE_FORMAT

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install the console and file handlers, or re-level them if already installed.

        Args:
            log_level: DEBUG, INFO, ... Defaults to ``LOG_LEVEL`` from .env.
            log_file: Rotating log file. Defaults to ``logs/clpool.log``.
            console_output: Attach the console handler.
            file_output: Attach the file handler. Defaults to ``LOG_TO_FILE``.
        """
        level = _numeric_level(log_level or LOG_LEVEL)
        with self._lock:
            logging.getLogger().setLevel(level)
            if self._level is not None:
                for handler in self._handlers:
                    handler.setLevel(level)
                self._level = level
                return

            # timestamps are UTC on every host
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            if console_output:
                self._handlers.append(self._console_handler())
            if LOG_TO_FILE if file_output is None else file_output:
                self._handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            root = logging.getLogger()
            for handler in self._handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)
            self._level = level

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stdout)
        return RichHandler(
            console=Console(theme=POOL_THEME, highlight=False),
            highlighter=PoolLogHighlighter(),
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def reset(self) -> None:
        """Detach and close the installed handlers."""
        with self._lock:
            root = logging.getLogger()
            for handler in self._handlers:
                root.removeHandler(handler)
                handler.close()
            self._handlers = []
            self._level = None

    def get_logger(self, name: str) -> logging.Logger:
        if not self.is_configured:
            self.configure()
        return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """Module logger, configuring the default output on first use."""
    return LogManager().get_logger(name)
