"""
Logging configuration for session_signup.

Every module logs through ``logging.getLogger(__name__)`` below the
``session_signup`` logger. The CLI calls setup_logging() once per command:
messages go to stderr (colored on a terminal) and, unless disabled, to one
log file per day under ``<config dir>/logs`` that always records DEBUG.

Environment overrides:
    SESSION_SIGNUP_DEBUG=1           force DEBUG on the console
    SESSION_SIGNUP_LOG_LEVEL=WARNING console level by name
    SESSION_SIGNUP_LOG_FILE=path     write to this file ("none" disables)
"""

import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from session_signup.utils.paths import resolve_config_dir

LOGGER_NAME = "session_signup"

# Console format when not verbose: setup and watch output stays readable
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Verbose console and log file format
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Daily log files are named session_signup_YYYYMMDD.log
LOG_FILE_PREFIX = "session_signup_"

ENV_LOG_LEVEL = "SESSION_SIGNUP_LOG_LEVEL"
ENV_DEBUG = "SESSION_SIGNUP_DEBUG"
ENV_LOG_FILE = "SESSION_SIGNUP_LOG_FILE"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

TRUTHY = ("1", "true", "yes")
FILE_LOGGING_OFF = ("", "none", "disabled")


def get_default_log_dir() -> Path:
    return resolve_config_dir() / "logs"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name and message on a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._terminal_has_colors()

    @staticmethod
    def _terminal_has_colors() -> bool:
        # https://no-color.org/
        if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
            return False
        isatty = getattr(sys.stderr, "isatty", None)
        return bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if not self.use_colors or color is None:
            return super().format(record)

        # The file handler formats the same record, so color a copy
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """
    Console log level requested by the environment.

    SESSION_SIGNUP_DEBUG wins over SESSION_SIGNUP_LOG_LEVEL; unknown level
    names fall back to INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in TRUTHY:
        return logging.DEBUG
    return LEVELS.get(os.environ.get(ENV_LOG_LEVEL, "INFO").upper(), logging.INFO)


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Path of today's log file, or None if file logging is switched off.

    Args:
        log_dir: Directory of the daily files (default: <config dir>/logs)
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.strip().lower() in FILE_LOGGING_OFF:
            return None
        return Path(override)

    day = date.today().strftime("%Y%m%d")
    return (log_dir or get_default_log_dir()) / f"{LOG_FILE_PREFIX}{day}.log"


def _add_file_handler(logger: logging.Logger, file_path: Path) -> None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(file_path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not create log file {file_path}: {e}")
        return

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)
    # The console handler keeps its own level
    logger.setLevel(logging.DEBUG)
    logger.debug(f"Log file: {file_path}")


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the session_signup logger hierarchy.

    Calling it again replaces the handlers of the previous call.

    Args:
        level: Console level (default: from the environment)
        verbose: DEBUG level and the detailed format on the console
        log_dir: Directory of the daily log file
        log_file: Explicit log file, overriding log_dir
        enable_file_logging: False to log to the console only
        use_colors: Color console output when the terminal supports it

    Returns:
        The configured ``session_signup`` logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(level)
    logger.propagate = False

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(console_format, DATE_FORMAT)
        if use_colors
        else logging.Formatter(console_format, DATE_FORMAT)
    )
    logger.addHandler(console)

    if enable_file_logging:
        file_path = log_file or get_log_file_path(log_dir)
        if file_path is not None:
            _add_file_handler(logger, file_path)

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest ``keep_count`` daily log files.

    Returns:
        Number of files deleted (0 when keep_count is 0 or less)
    """
    logs_dir = log_dir or get_default_log_dir()
    if keep_count <= 0 or not logs_dir.is_dir():
        return 0

    newest_first = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for path in newest_first[keep_count:]:
        try:
            path.unlink()
        except OSError as e:
            logging.getLogger(LOGGER_NAME).debug(f"Could not delete {path}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger below ``session_signup`` for a module or command name."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
