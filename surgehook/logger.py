"""
Surge Hook Logging
==================

Process-wide logging set up once through ``LogManager``: a ``rich`` console
handler that highlights pools, fee percentages and gate decisions, plus an
optional rotating log file.

Usage:
    >>> from surgehook.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Hook registered")
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
)


LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "surgehook.log"

SURGE_THEME = Theme(
    {
        "surge.error_name":     "bold red",
        "surge.level_critical": "bold red reverse",
        "surge.level_debug":    "bold dim",
        "surge.level_error":    "bold red",
        "surge.level_info":     "bold green",
        "surge.level_warning":  "bold yellow",
        "surge.logger_name":    "magenta",
        "surge.percentage":     "bold cyan",
        "surge.pool":           "bold white",
        "surge.rejected":       "bold yellow",
        "surge.timestamp":      "bold cyan",
    }
)


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escape sequences and control characters (except tab and
    newline) from formatted records. Pool names are caller-supplied and end up
    in log lines verbatim.
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"   # CSI sequences
        r"|\x1b[@-Z\\-_]"            # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"  # controls, carriage return included
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe_re.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class SurgeLogHighlighter(RegexHighlighter):
    """Colors levels, pool identifiers, fee percentages and gate decisions."""

    base_style = "surge."
    highlights = [
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"\bpool[= ](?P<pool>[\w\-.:]+)",
        r"(?P<percentage>\b\d+(?:\.\d+)?%)",
        r"(?P<rejected>\b(?:REJECTED|SURGING)\b)",
        r"(?P<error_name>\b(?:ReentrantCall|VaultNotSet|PoolNotRegistered|PoolAlreadyRegistered"
        r"|InvalidPercentage|After(?:Add|Remove)LiquidityHookFailed)\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


class LogManager:
    """Singleton owning the root logger's handlers."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._configured = False
        return cls._instance

    @staticmethod
    def validate_log_format(log_format: Optional[str]) -> str:
        """
        Return ``log_format`` if it formats a sample record, else the default.

        Malformed ``%(name)s`` fields and unknown record attributes both fall
        back to ``LOG_FORMAT``'s default.
        """
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default
        try:
            formatter = logging.Formatter(fmt=str(log_format), validate=True)
            formatter.format(logging.LogRecord("surgehook", logging.INFO, "", 0, "check", (), None))
        except (ValueError, KeyError, TypeError) as e:
            print(f"surgehook.logger - invalid log format ({e}), using default", file=sys.stderr)
            return default
        return str(log_format)

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install console and file handlers on the root logger. Later calls are no-ops.

        Args:
            log_level: level name; defaults to ``LOG_LEVEL``
            log_file: rotating log file; defaults to ``logs/surgehook.log``
            console_output: attach the console handler
            file_output: attach the file handler; defaults to ``LOG_FILE_OUTPUT``
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root_logger = logging.getLogger()
            root_logger.setLevel(level)
            root_logger.handlers.clear()

            # UTC timestamps
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=(str(LOG_DATE_FORMAT) or str(LOG_DATE_FORMAT.default())) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    handlers.append(RichHandler(
                        console=Console(theme=SURGE_THEME, highlight=False, stderr=True),
                        highlighter=SurgeLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    ))
                else:
                    handlers.append(logging.StreamHandler(sys.stderr))

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root_logger.addHandler(handler)
            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, configuring the logging subsystem on first use."""
    return LogManager().get_logger(name)
