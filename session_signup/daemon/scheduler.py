"""
Process-level coordination for unattended runs.

The ``watch`` command keeps one DaemonScheduler alive per config directory,
recorded in a PID file. Every pass that writes to a sheet holds a TableLock
named after that sheet, so a manual ``setup`` cannot interleave with the
watcher or with a second terminal working on the same sheet.
"""

from __future__ import annotations

import logging
import os
import re
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import TracebackType

from session_signup.utils.paths import DEFAULT_CONFIG_DIR

logger = logging.getLogger(__name__)

DEFAULT_PID_DIR = DEFAULT_CONFIG_DIR
DEFAULT_PID_FILE = DEFAULT_PID_DIR / "watch.pid"

LOCK_DIR_NAME = "locks"

# SIGTERM from ``watch --stop``, SIGINT from Ctrl-C
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class DaemonError(Exception):
    """Base exception for scheduler and lock errors."""


class PIDFileError(DaemonError):
    """The PID file could not be read, written or removed."""


class DaemonAlreadyRunningError(DaemonError):
    """The PID file belongs to a live process."""


class TableBusyError(DaemonAlreadyRunningError):
    """Another process is in the middle of a pass over the same sheet."""


def pid_alive(pid: int) -> bool:
    """True if a process with this id exists (signal 0 sends nothing)."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but belongs to another user
        return True
    return True


@dataclass
class DaemonStats:
    started_at: datetime = field(default_factory=datetime.now)
    run_count: int = 0
    run_success_count: int = 0
    run_error_count: int = 0
    last_run_at: datetime | None = None
    last_run_success: bool = False
    last_error: str | None = None

    def begin(self) -> None:
        self.run_count += 1
        self.last_run_at = datetime.now()

    def finish(self, success: bool, error: str | None = None) -> None:
        self.last_run_success = success
        if success:
            self.run_success_count += 1
            self.last_error = None
        else:
            self.run_error_count += 1
            if error is not None:
                self.last_error = error


class PIDFileManager:
    """
    A file holding the id of the process that owns it.

    ``create`` refuses while the recorded process is alive and silently
    takes over a file left behind by a process that died.
    """

    def __init__(self, pid_file: Path | None = None):
        self.pid_file = pid_file or DEFAULT_PID_FILE

    def read(self) -> int | None:
        """
        The recorded PID, or None when there is no file.

        Raises:
            PIDFileError: If the file is unreadable or holds no integer
        """
        try:
            text = self.pid_file.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PIDFileError(f"Failed to read PID file {self.pid_file}: {e}") from e

        if not text.isdigit():
            raise PIDFileError(f"Invalid PID in file {self.pid_file}: {text!r}")
        return int(text)

    def owner(self) -> int | None:
        """The recorded PID if that process is still alive."""
        pid = self.read()
        if pid is not None and pid_alive(pid):
            return pid
        return None

    def create(self) -> None:
        """
        Record the current process.

        The file is created with O_EXCL, so of two processes racing for it
        exactly one succeeds. A file left by a dead process is removed and
        the creation retried once.

        Raises:
            DaemonAlreadyRunningError: If a live process already owns the file
            PIDFileError: If the file cannot be written
        """
        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PIDFileError(f"Failed to create PID file {self.pid_file}: {e}") from e

        if self._create_exclusive():
            return
        self._reclaim_if_stale()
        if not self._create_exclusive():
            raise DaemonAlreadyRunningError(
                f"Another process took over {self.pid_file} first"
            )

    def _create_exclusive(self) -> bool:
        """Write our PID to a new file. False if the file already exists."""
        try:
            fd = os.open(self.pid_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise PIDFileError(f"Failed to create PID file {self.pid_file}: {e}") from e

        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        logger.debug(f"Wrote {self.pid_file}")
        return True

    def _reclaim_if_stale(self) -> None:
        """
        Remove the existing file if its process is dead.

        Raises:
            DaemonAlreadyRunningError: If its process is alive, or the file
                                       is empty because its owner is still
                                       writing it
        """
        try:
            recorded = self.read()
        except PIDFileError:
            text = self._raw_text()
            if not text:
                raise DaemonAlreadyRunningError(
                    f"{self.pid_file} is being created by another process"
                ) from None
            logger.warning(f"Replacing unreadable PID file {self.pid_file}")
            recorded = None

        if recorded is not None:
            if pid_alive(recorded):
                raise DaemonAlreadyRunningError(
                    f"Already running with PID {recorded} ({self.pid_file})"
                )
            logger.warning(f"Taking over stale PID file of dead process {recorded}")
        self.remove()

    def _raw_text(self) -> str:
        try:
            return self.pid_file.read_text().strip()
        except OSError:
            return ""

    def remove(self) -> None:
        try:
            self.pid_file.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise PIDFileError(f"Failed to remove PID file {self.pid_file}: {e}") from e
        logger.debug(f"Removed {self.pid_file}")


def lock_file_name(table_name: str) -> str:
    """"Conference Setup" -> "conference-setup.lock"."""
    slug = re.sub(r"[^a-z0-9]+", "-", table_name.lower()).strip("-")
    return f"{slug or 'table'}.lock"


class TableLock:
    """
    Exclusive, cross-process hold on one sheet.

        with TableLock("Conference Setup", config_dir):
            engine.set_up_conference()

    Entering raises TableBusyError while another live process holds it.
    """

    def __init__(self, table_name: str, config_dir: Path | None = None):
        self.table_name = table_name
        lock_dir = (config_dir or DEFAULT_CONFIG_DIR) / LOCK_DIR_NAME
        self._file = PIDFileManager(lock_dir / lock_file_name(table_name))

    @property
    def path(self) -> Path:
        return self._file.pid_file

    def acquire(self) -> None:
        try:
            self._file.create()
        except DaemonAlreadyRunningError as e:
            raise TableBusyError(
                f"Another process is already working on '{self.table_name}': {e}"
            ) from e
        logger.debug(f"Locked '{self.table_name}'")

    def release(self) -> None:
        self._file.remove()
        logger.debug(f"Unlocked '{self.table_name}'")

    def __enter__(self) -> TableLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class DaemonScheduler:
    """
    Calls a callback every ``interval`` seconds until stopped.

        scheduler = DaemonScheduler(interval=300)
        scheduler.set_callback(processor.run_once)
        scheduler.run()

    The callback returns True when its pass succeeded. A raising callback
    is logged and counted as a failed cycle; the loop keeps going.
    """

    def __init__(
        self,
        interval: int = 300,
        pid_file: Path | None = None,
        run_immediately: bool = True,
    ):
        self.interval = interval
        self.run_immediately = run_immediately
        self.stats = DaemonStats()
        self._pid = PIDFileManager(pid_file)
        self._callback: Callable[[], bool] | None = None
        self._running = False
        self._shutdown_requested = False
        self._previous_handlers: dict[int, object] = {}

    @property
    def pid_file(self) -> Path:
        return self._pid.pid_file

    def set_callback(self, callback: Callable[[], bool]) -> None:
        self._callback = callback

    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        logger.info("Stop requested")
        self._shutdown_requested = True

    def _signal_handler(self, signum: int, frame: object) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self._shutdown_requested = True

    def _install_signal_handlers(self) -> None:
        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(
                signum, self._signal_handler
            )

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)  # type: ignore[arg-type]
        self._previous_handlers.clear()

    def _run_once(self) -> bool:
        if self._callback is None:
            logger.warning("No callback configured, skipping run")
            return False

        self.stats.begin()
        logger.info(f"Starting run #{self.stats.run_count}")
        try:
            success = bool(self._callback())
        except Exception as e:
            logger.error(f"Run #{self.stats.run_count} failed: {e}")
            self.stats.finish(False, str(e))
            return False

        self.stats.finish(success)
        if success:
            logger.info(f"Run #{self.stats.run_count} completed")
        else:
            logger.warning(f"Run #{self.stats.run_count} completed with errors")
        return success

    def _wait(self, seconds: int) -> bool:
        """
        Wait up to ``seconds``, waking every second to check for shutdown.

        The deadline is wall-clock so a suspended laptop catches up on
        resume. Returns False if shutdown was requested.
        """
        deadline = time.time() + seconds
        while not self._shutdown_requested:
            remaining = deadline - time.time()
            if remaining <= 0:
                break
            time.sleep(min(1.0, remaining))
        return not self._shutdown_requested

    def run(self) -> None:
        """
        Block, running the callback on schedule, until a signal or stop().

        Raises:
            DaemonAlreadyRunningError: If another watcher owns the PID file
            PIDFileError: If the PID file cannot be written
        """
        self._pid.create()
        logger.info(
            f"Watcher started (PID {os.getpid()}, every {self.interval}s, "
            f"PID file {self.pid_file})"
        )
        self._install_signal_handlers()
        self._running = True
        self._shutdown_requested = False
        self.stats = DaemonStats()

        try:
            if self.run_immediately:
                self._run_once()
            while self._wait(self.interval):
                self._run_once()
        finally:
            self._running = False
            self._restore_signal_handlers()
            self._pid.remove()
            logger.info("Watcher stopped")

    @classmethod
    def get_running_pid(cls, pid_file: Path | None = None) -> int | None:
        """PID of a live watcher recorded in ``pid_file``, else None."""
        return PIDFileManager(pid_file).owner()

    @classmethod
    def stop_running_daemon(cls, pid_file: Path | None = None) -> bool:
        """SIGTERM the live watcher. False if none is running or it can't be signalled."""
        pid = cls.get_running_pid(pid_file)
        if pid is None:
            logger.info("No running watcher found")
            return False

        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.warning(f"Watcher process {pid} exited before it could be stopped")
            return False
        except PermissionError:
            logger.error(f"Permission denied sending SIGTERM to PID {pid}")
            return False
        logger.info(f"Sent SIGTERM to watcher (PID {pid})")
        return True


__all__ = [
    "DaemonScheduler",
    "DaemonStats",
    "DaemonError",
    "PIDFileError",
    "DaemonAlreadyRunningError",
    "TableBusyError",
    "PIDFileManager",
    "TableLock",
    "lock_file_name",
    "pid_alive",
    "DEFAULT_PID_DIR",
    "DEFAULT_PID_FILE",
]
