"""
govbox Logging System
=====================

A thread-safe logging utility for govbox. This module integrates with the
standard Python `logging` library and the `rich` library so deployment and
governance output (contract addresses, transaction hashes, proposal states)
stays readable on the console and is persisted to a rotating log file.

Usage:
    >>> from govbox.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Box deployed to: %s", box.address)
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
    PROJECT_ROOT,
)


LOG_FILE_PATH = PROJECT_ROOT / "logs" / "govbox.log"

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = (
    "web3",
    "web3.RequestManager",
    "web3.providers",
    "eth",
    "eth_tester",
    "httpx",
    "httpcore",
    "urllib3",
    "solcx",
)


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    Ensures the logging subsystem is initialized exactly once, attaching a
    Rich console handler and a rotating file handler to the root logger.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._console_handler: Optional[logging.Handler] = None
        self._file_handler: Optional[logging.Handler] = None
        self._initialized = True

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Validates a logging format string by formatting a dummy record.

        Returns the format unchanged, or the default `LOG_FORMAT` when it
        cannot be used.
        """
        if not log_format:
            return str(LOG_FORMAT.default())

        log_format = str(log_format)
        formatter = logging.Formatter(fmt=log_format)
        record = logging.LogRecord(
            name="govbox", level=logging.INFO, pathname="", lineno=0,
            msg="probe", args=(), exc_info=None,
        )
        try:
            formatter.format(record)
        except (KeyError, ValueError, TypeError) as e:
            print(
                f"{time.strftime('%Y-%m-%d %H:%M:%S')} - govbox.logger - "
                f"Invalid log format ({e}). Using default.",
                file=sys.stderr,
            )
            return str(LOG_FORMAT.default())
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Validates a strftime date format, falling back to the default."""
        if not date_format or "%" not in str(date_format):
            return str(LOG_DATE_FORMAT.default())
        try:
            time.strftime(str(date_format))
        except ValueError:
            return str(LOG_DATE_FORMAT.default())
        return str(date_format)

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Path to log file. Defaults to `logs/govbox.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to `LOG_FILE_OUTPUT`.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)

            for lib in NOISY_LOGGERS:
                logging.getLogger(lib).setLevel(logging.WARNING)

            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # UTC keeps log files comparable across machines
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    theme = Theme(
                        {
                            "govbox.address":        "cyan",
                            "govbox.hash":           "dim cyan",
                            "govbox.level_critical": "bold red reverse",
                            "govbox.level_debug":    "bold dim",
                            "govbox.level_error":    "bold red",
                            "govbox.level_info":     "bold green",
                            "govbox.level_warning":  "bold yellow",
                            "govbox.logger_name":    "magenta",
                            "govbox.state":          "bold white",
                            "govbox.tag":            "bold magenta",
                            "govbox.timestamp":      "bold cyan",
                        }
                    )
                    rich_handler = RichHandler(
                        console=Console(theme=theme, highlight=False, stderr=True),
                        highlighter=GovboxLogHighlighter(),
                        rich_tracebacks=True,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(formatter)
                    root_logger.addHandler(rich_handler)
                    self._console_handler = rich_handler
                else:
                    console_handler = logging.StreamHandler(sys.stderr)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(formatter)
                    root_logger.addHandler(console_handler)
                    self._console_handler = console_handler

            if LOG_FILE_OUTPUT if file_output is None else file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)
                self._file_handler = file_handler

            self._configured = True

    def set_console_level(self, log_level: str) -> None:
        """
        Changes the console verbosity after configuration.

        The rotating file handler keeps its own level, so raising the console
        threshold does not drop records from the log file.
        """
        if not self._configured:
            self.configure()
        numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
        with self._lock:
            if self._console_handler is not None:
                self._console_handler.setLevel(numeric_level)
            levels = [numeric_level]
            if self._file_handler is not None:
                levels.append(self._file_handler.level)
            logging.getLogger().setLevel(min(levels))

    @property
    def console_handler(self) -> Optional[logging.Handler]:
        return self._console_handler

    @property
    def file_handler(self) -> Optional[logging.Handler]:
        return self._file_handler

    def get_logger(self, name: str) -> logging.Logger:
        """Returns a standard logger, configuring the subsystem on first use."""
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escape sequences and control characters.

    Revert reasons and token names are chain-supplied strings, so they are
    sanitized before reaching the terminal.
    """

    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F\r]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        return cls._control_chars_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class GovboxLogHighlighter(RegexHighlighter):
    """Highlights addresses, hashes, proposal states and log levels."""

    base_style = "govbox."
    highlights = [
        r"(?P<hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<state>\b(PENDING|ACTIVE|CANCELED|DEFEATED|SUCCEEDED|QUEUED|EXPIRED|EXECUTED)\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.

    Args:
        name (str): The name of the module requesting the logger.

    Returns:
        logging.Logger: The configured logger instance.
    """
    return _manager.get_logger(name)
