"""
Tests for the logging configuration module.
"""

import logging
import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from session_signup.utils.logging import (
    ENV_DEBUG,
    ENV_LOG_FILE,
    ENV_LOG_LEVEL,
    LOG_FILE_PREFIX,
    LOGGER_NAME,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logger():
    """Leave the package logger as it was found."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.disabled = False


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env."""

    @pytest.mark.parametrize("value", ["1", "true", "YES"])
    def test_debug_flag(self, value):
        with patch.dict(os.environ, {ENV_DEBUG: value}):
            assert get_log_level_from_env() == logging.DEBUG

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("warning", logging.WARNING),
            ("WARN", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("bogus", logging.INFO),
        ],
    )
    def test_level_names(self, value, expected):
        with patch.dict(os.environ, {ENV_LOG_LEVEL: value, ENV_DEBUG: ""}):
            assert get_log_level_from_env() == expected


class TestGetLogFilePath:
    """Tests for get_log_file_path."""

    def test_env_path_is_used(self):
        with patch.dict(os.environ, {ENV_LOG_FILE: "/var/log/signup.log"}):
            assert get_log_file_path() == Path("/var/log/signup.log")

    @pytest.mark.parametrize("value", ["none", "Disabled", ""])
    def test_env_can_disable_file_logging(self, value):
        with patch.dict(os.environ, {ENV_LOG_FILE: value}):
            assert get_log_file_path() is None

    def test_daily_file_in_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ENV_LOG_FILE, raising=False)

        path = get_log_file_path(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith(LOG_FILE_PREFIX)
        assert path.suffix == ".log"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_only(self):
        logger = setup_logging(level=logging.WARNING, enable_file_logging=False)

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_verbose_forces_debug(self):
        logger = setup_logging(
            level=logging.ERROR, verbose=True, enable_file_logging=False
        )

        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_file_handler_always_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"

        logger = setup_logging(level=logging.INFO, log_file=log_file)

        file_handlers = [
            h for h in logger.handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        assert log_file.parent.exists()

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)

        assert len(logger.handlers) == 1


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs."""

    def _make_logs(self, directory, count):
        paths = []
        for i in range(count):
            path = directory / f"{LOG_FILE_PREFIX}2026010{i}.log"
            path.write_text("x")
            mtime = time.time() - (count - i) * 60
            os.utime(path, (mtime, mtime))
            paths.append(path)
        return paths

    def test_keeps_newest(self, tmp_path):
        paths = self._make_logs(tmp_path, 5)

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        assert [p.exists() for p in paths] == [False, False, False, True, True]

    def test_ignores_other_files(self, tmp_path):
        other = tmp_path / "notes.log"
        other.write_text("keep me")
        self._make_logs(tmp_path, 2)

        cleanup_old_logs(tmp_path, keep_count=1)

        assert other.exists()

    def test_zero_disables_cleanup(self, tmp_path):
        self._make_logs(tmp_path, 3)

        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0


class TestGetLogger:
    """Tests for get_logger."""

    def test_prefixes_package_name(self):
        assert get_logger("cli").name == f"{LOGGER_NAME}.cli"
        assert get_logger("session_signup.sync").name == "session_signup.sync"
        assert get_logger(LOGGER_NAME).name == LOGGER_NAME

    def test_similar_prefix_is_not_the_package(self):
        assert get_logger("session_signupx").name == f"{LOGGER_NAME}.session_signupx"

    def test_module_messages_reach_log_file(self, tmp_path):
        log_file = tmp_path / "run.log"
        setup_logging(level=logging.WARNING, log_file=log_file, use_colors=False)

        get_logger("sync.engine").debug("reconciled 3 rows")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        assert "reconciled 3 rows" in log_file.read_text()


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def test_no_colors_without_tty(self):
        with patch("sys.stderr") as stderr:
            stderr.isatty.return_value = False
            formatter = ColoredFormatter("%(levelname)s: %(message)s")

        record = logging.LogRecord("x", logging.ERROR, "f", 1, "boom", None, None)
        assert formatter.format(record) == "ERROR: boom"

    def test_colors_do_not_leak_into_record(self):
        formatter = ColoredFormatter("%(levelname)s: %(message)s")
        formatter.use_colors = True
        record = logging.LogRecord("x", logging.WARNING, "f", 1, "careful", None, None)

        colored = formatter.format(record)

        assert ColoredFormatter.COLORS["WARNING"] in colored
        assert record.levelname == "WARNING"
        assert record.msg == "careful"
