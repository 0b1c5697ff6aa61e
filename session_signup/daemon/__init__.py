"""
session_signup.daemon - watcher scheduling and per-sheet locks
"""

import re

from session_signup.daemon.scheduler import (
    DEFAULT_PID_DIR,
    DEFAULT_PID_FILE,
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonScheduler,
    DaemonStats,
    PIDFileError,
    PIDFileManager,
    TableBusyError,
    TableLock,
)

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

_INTERVAL_RE = re.compile(r"^(\d+)\s*([smhd])?$")


def parse_interval(interval: str | int) -> int:
    """
    Seconds for a watch interval such as "30s", "5m", "1h", "1d" or "300".

    A bare number (string or int) is already in seconds.

    Raises:
        ValueError: On anything else
    """
    if isinstance(interval, int):
        return interval
    if not isinstance(interval, str):
        raise ValueError(
            f"Invalid interval type: {type(interval).__name__}. Expected str or int."
        )

    match = _INTERVAL_RE.match(interval.strip().lower())
    if match is None:
        raise ValueError(
            f"Invalid interval format: '{interval}'. "
            "Use a number of seconds or a value like '30s', '5m', '1h', '1d'."
        )
    count, unit = match.groups()
    return int(count) * UNIT_SECONDS[unit or "s"]


__all__ = [
    "parse_interval",
    "DaemonScheduler",
    "DaemonStats",
    "DaemonError",
    "PIDFileError",
    "DaemonAlreadyRunningError",
    "TableBusyError",
    "PIDFileManager",
    "TableLock",
    "DEFAULT_PID_DIR",
    "DEFAULT_PID_FILE",
]
