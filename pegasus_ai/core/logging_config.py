"""
Logging Configuration Module.

This module provides centralized logging configuration for Pegasus AI.

Features:
- Configurable log levels per module
- Console and size-rotated file logging
- Simple, detailed and JSON line formats
- Retention clean-up of rotated log files

Logging is not configured on import; applications call ``setup_logging``
once at start-up (``factory.build_service`` does not do it for them).
"""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional, Union

from .config import Settings, get_settings

LOG_FILE_NAME = "pegasus.log"

# Define log formats
SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS: Dict[str, str] = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

# Module-specific log levels
MODULE_LOG_LEVELS: Dict[str, str] = {
    # Core modules
    "pegasus_ai.agent_core": "DEBUG",
    "pegasus_ai.agent_core.planning": "DEBUG",
    "pegasus_ai.agent_core.runtime": "DEBUG",
    "pegasus_ai.agent_core.reflection": "DEBUG",
    "pegasus_ai.agent_core.capabilities": "INFO",
    "pegasus_ai.agent_core.llm": "INFO",
    # Third-party libraries (reduce noise)
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "mcp": "WARNING",
    "asyncio": "WARNING",
}


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
    enable_console: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Configure logging for the application.

    Explicit arguments override the values from ``settings`` (or
    ``get_settings()`` when not given).

    Args:
        log_level: Override default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Override default format (simple, detailed, json)
        enable_file: Whether to enable file logging
        enable_console: Whether to enable console logging
        settings: Settings to read the defaults from
    """
    settings = settings or get_settings()
    level = (log_level or settings.log_level).upper()
    fmt = log_format or settings.log_format
    file_enabled = settings.log_file_enabled if enable_file is None else enable_file
    console_enabled = settings.log_console_enabled if enable_console is None else enable_console

    formatter = logging.Formatter(FORMATS.get(fmt, DETAILED_FORMAT), datefmt="%Y-%m-%d %H:%M:%S")

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels, filter at handler level

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if file_enabled:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        prune_old_logs(log_dir)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if not root_logger.handlers:
        root_logger.addHandler(logging.NullHandler())

    # Configure module-specific log levels
    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={file_enabled}")


def prune_old_logs(log_dir: Union[str, Path], retention_days: int = 30) -> int:
    """
    Remove rotated log files older than ``retention_days``.

    Only rotated files (``pegasus.log.1``, ``pegasus.log.2``, ...) are
    considered; the active log file is never removed.

    Returns:
        The number of files removed.
    """
    directory = Path(log_dir)
    if not directory.is_dir():
        return 0
    cutoff = time.time() - retention_days * 24 * 60 * 60
    removed = 0
    for path in directory.glob(f"{LOG_FILE_NAME}.*"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError as e:
            logging.getLogger(__name__).warning(f"Could not remove old log file {path}: {e}")
    return removed


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The module name (typically __name__)

    Returns:
        A configured logger instance
    """
    return logging.getLogger(name)
