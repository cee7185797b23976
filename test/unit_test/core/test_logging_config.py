"""Unit tests for logging configuration module.

Tests verify that the logging configuration functions work correctly with different
scenarios including various log levels, formats, and file logging options.
"""

import logging
import os
import time
from logging.handlers import RotatingFileHandler

import pytest

from pegasus_ai.core.config import Settings
from pegasus_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    LOG_FILE_NAME,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    prune_old_logs,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def _console_handler():
    return next(
        (
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ),
        None,
    )


def _file_handler():
    return next((h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)), None)


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False, settings=Settings())

        console_handler = _console_handler()
        assert console_handler is not None
        assert console_handler.level == expected_level

    def test_setup_logging_reads_level_from_settings(self):
        setup_logging(enable_file=False, settings=Settings(log_level="WARNING"))
        assert _console_handler().level == logging.WARNING

    def test_module_levels_applied(self):
        setup_logging(enable_file=False, settings=Settings())
        for module_name, module_level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(module_name).level == logging.getLevelName(module_level)


class TestSetupLoggingFormats:
    @pytest.mark.parametrize(
        "log_format,expected",
        [("simple", SIMPLE_FORMAT), ("detailed", DETAILED_FORMAT), ("json", JSON_FORMAT)],
    )
    def test_formatter_matches_format(self, log_format, expected):
        setup_logging(log_format=log_format, enable_file=False, settings=Settings())
        assert _console_handler().formatter._fmt == expected


class TestSetupLoggingHandlers:
    """Test console and file handler selection."""

    def test_file_logging_creates_rotating_handler(self, tmp_path):
        log_dir = tmp_path / "logs"
        settings = Settings(log_dir=str(log_dir), log_max_bytes=1024, log_backup_count=3)

        setup_logging(enable_file=True, enable_console=False, settings=settings)

        handler = _file_handler()
        assert handler is not None
        assert handler.maxBytes == 1024
        assert handler.backupCount == 3
        assert (log_dir / LOG_FILE_NAME).exists()
        assert _console_handler() is None

    def test_no_handlers_installs_null_handler(self):
        setup_logging(enable_file=False, enable_console=False, settings=Settings())
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.NullHandler)

    def test_repeated_setup_does_not_duplicate_handlers(self):
        settings = Settings()
        setup_logging(enable_file=False, settings=settings)
        setup_logging(enable_file=False, settings=settings)
        assert len(logging.getLogger().handlers) == 1


class TestPruneOldLogs:
    def test_removes_only_old_rotated_files(self, tmp_path):
        active = tmp_path / LOG_FILE_NAME
        old = tmp_path / f"{LOG_FILE_NAME}.1"
        fresh = tmp_path / f"{LOG_FILE_NAME}.2"
        for path in (active, old, fresh):
            path.write_text("line\n")
        stale = time.time() - 40 * 24 * 60 * 60
        os.utime(old, (stale, stale))
        os.utime(active, (stale, stale))

        removed = prune_old_logs(tmp_path, retention_days=30)

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()
        assert active.exists()

    def test_missing_directory_is_ignored(self, tmp_path):
        assert prune_old_logs(tmp_path / "absent") == 0


def test_get_logger_returns_named_logger():
    assert get_logger("pegasus_ai.test").name == "pegasus_ai.test"
