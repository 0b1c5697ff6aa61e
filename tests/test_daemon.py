"""
Tests for the daemon module: interval parsing, PID files, per-sheet locks
and the scheduler loop.
"""

import os
import signal
import threading
from unittest.mock import MagicMock, patch

import pytest

from session_signup.daemon import (
    DaemonAlreadyRunningError,
    DaemonScheduler,
    PIDFileError,
    PIDFileManager,
    TableBusyError,
    TableLock,
    parse_interval,
)
from session_signup.daemon.scheduler import lock_file_name

# A PID far above any real pid_max
DEAD_PID = 99999999


class TestParseInterval:
    """Tests for parse_interval."""

    @pytest.mark.parametrize(
        "value,seconds",
        [
            ("30s", 30),
            ("5m", 300),
            ("1h", 3600),
            ("2d", 172800),
            (" 10M ", 600),
            ("45", 45),
            (120, 120),
        ],
    )
    def test_valid(self, value, seconds):
        assert parse_interval(value) == seconds

    @pytest.mark.parametrize("value", ["", "5w", "m5", "five minutes"])
    def test_invalid_strings(self, value):
        with pytest.raises(ValueError, match="Invalid interval format"):
            parse_interval(value)

    def test_invalid_type(self):
        with pytest.raises(ValueError, match="Invalid interval type"):
            parse_interval(1.5)


class TestPIDFileManager:
    """Tests for PID file handling."""

    def test_create_read_remove(self, tmp_path):
        manager = PIDFileManager(tmp_path / "run" / "watch.pid")

        manager.create()
        assert manager.read() == os.getpid()

        manager.remove()
        assert manager.read() is None
        manager.remove()

    def test_live_process_blocks_create(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text(str(os.getpid()))

        with pytest.raises(DaemonAlreadyRunningError):
            PIDFileManager(pid_file).create()

    def test_stale_file_is_reclaimed(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text(str(DEAD_PID))

        PIDFileManager(pid_file).create()

        assert pid_file.read_text() == str(os.getpid())

    def test_garbage_content(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text("not-a-pid")

        with pytest.raises(PIDFileError, match="Invalid PID"):
            PIDFileManager(pid_file).read()


class TestTableLock:
    """Tests for the per-sheet lock."""

    def test_lock_file_name(self):
        assert lock_file_name("Conference Setup") == "conference-setup.lock"
        assert lock_file_name("Form Responses 1") == "form-responses-1.lock"
        assert lock_file_name("***") == "table.lock"

    def test_lock_lives_in_config_dir(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)

        assert lock.path == tmp_path / "locks" / "conference-setup.lock"

    def test_context_manager_releases(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)

        with lock:
            assert lock.path.exists()

        assert not lock.path.exists()

    def test_released_on_error(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)

        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("pass failed")

        assert not lock.path.exists()

    def test_held_lock_is_busy(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)
        lock.path.parent.mkdir(parents=True)
        # Another live process (this one) holds the lock
        lock.path.write_text(str(os.getpid()))

        with pytest.raises(TableBusyError, match="Conference Setup"):
            lock.acquire()

    def test_stale_lock_is_reclaimed(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text(str(DEAD_PID))

        with lock:
            assert lock.path.read_text() == str(os.getpid())

    def test_different_sheets_do_not_conflict(self, tmp_path):
        with TableLock("Conference Setup", tmp_path):
            with TableLock("Form Responses 1", tmp_path):
                pass

    def test_simultaneous_acquire_has_one_winner(self, tmp_path):
        real_open = os.open
        barrier = threading.Barrier(2, timeout=5)

        def open_together(*args, **kwargs):
            # Both acquirers have checked the lock before either creates it
            barrier.wait()
            return real_open(*args, **kwargs)

        outcomes = []

        def acquire():
            try:
                TableLock("Conference Setup", tmp_path).acquire()
                outcomes.append("acquired")
            except TableBusyError:
                outcomes.append("busy")

        with patch("session_signup.daemon.scheduler.os.open", side_effect=open_together):
            threads = [threading.Thread(target=acquire) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

        assert sorted(outcomes) == ["acquired", "busy"]

    def test_empty_lock_file_is_busy(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text("")

        with pytest.raises(TableBusyError):
            lock.acquire()
        assert lock.path.exists()

    def test_unreadable_lock_file_is_replaced(self, tmp_path):
        lock = TableLock("Conference Setup", tmp_path)
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text("not-a-pid")

        with lock:
            assert lock.path.read_text() == str(os.getpid())

    def test_busy_is_an_already_running_error(self):
        assert issubclass(TableBusyError, DaemonAlreadyRunningError)


class TestDaemonScheduler:
    """Tests for the scheduler loop."""

    @pytest.fixture
    def scheduler(self, tmp_path):
        return DaemonScheduler(interval=60, pid_file=tmp_path / "watch.pid")

    def test_run_without_callback(self, scheduler):
        assert scheduler._run_once() is False
        assert scheduler.stats.run_count == 0

    def test_run_once_counts_success_and_failure(self, scheduler):
        scheduler.set_callback(MagicMock(side_effect=[True, False]))

        scheduler._run_once()
        scheduler._run_once()

        assert scheduler.stats.run_count == 2
        assert scheduler.stats.run_success_count == 1
        assert scheduler.stats.run_error_count == 1
        assert scheduler.stats.last_run_success is False

    def test_callback_exception_is_counted(self, scheduler):
        scheduler.set_callback(MagicMock(side_effect=RuntimeError("API down")))

        assert scheduler._run_once() is False
        assert scheduler.stats.last_error == "API down"

    def test_run_stops_when_callback_requests_it(self, scheduler):
        def callback():
            assert scheduler.is_running()
            assert scheduler.pid_file.exists()
            scheduler.stop()
            return True

        scheduler.set_callback(callback)
        scheduler.run()

        assert scheduler.stats.run_count == 1
        assert not scheduler.is_running()
        assert not scheduler.pid_file.exists()

    @patch("session_signup.daemon.scheduler.time.sleep")
    def test_interval_runs_until_signal(self, mock_sleep, tmp_path):
        scheduler = DaemonScheduler(
            interval=2, pid_file=tmp_path / "watch.pid", run_immediately=False
        )
        calls = []

        def callback():
            calls.append(1)
            if len(calls) == 2:
                scheduler._signal_handler(signal.SIGTERM, None)
            return True

        scheduler.set_callback(callback)
        clock = iter(range(0, 1000))

        with patch(
            "session_signup.daemon.scheduler.time.time",
            side_effect=lambda: next(clock),
        ):
            scheduler.run()

        assert len(calls) == 2

    def test_second_scheduler_refused(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text(str(os.getpid()))

        scheduler = DaemonScheduler(pid_file=pid_file)
        scheduler.set_callback(MagicMock(return_value=True))

        with pytest.raises(DaemonAlreadyRunningError):
            scheduler.run()

    def test_signal_handlers_restored(self, scheduler):
        original = signal.getsignal(signal.SIGTERM)
        scheduler.set_callback(lambda: scheduler.stop() or True)

        scheduler.run()

        assert signal.getsignal(signal.SIGTERM) == original

    def test_get_running_pid(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        assert DaemonScheduler.get_running_pid(pid_file) is None

        pid_file.write_text(str(DEAD_PID))
        assert DaemonScheduler.get_running_pid(pid_file) is None

        pid_file.write_text(str(os.getpid()))
        assert DaemonScheduler.get_running_pid(pid_file) == os.getpid()

    @patch("session_signup.daemon.scheduler.os.kill")
    def test_stop_running_daemon(self, mock_kill, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text("4242")

        assert DaemonScheduler.stop_running_daemon(pid_file) is True
        mock_kill.assert_called_with(4242, signal.SIGTERM)

    def test_stop_without_daemon(self, tmp_path):
        assert DaemonScheduler.stop_running_daemon(tmp_path / "watch.pid") is False
