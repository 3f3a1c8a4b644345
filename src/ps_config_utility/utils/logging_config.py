"""Logging configuration for ps-config-utility.

Provides configurable logging with:
- Console output on stderr, keeping stdout free for JSON documents
- File-based logging with rotation
- Timing of platform API calls on a separate performance logger

Environment Variables:
    PSCONFIG_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: WARNING)
    PSCONFIG_LOG_FILE: Path to log file (default: ~/.ps-config-utility/ps-config-utility.log)
    PSCONFIG_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    PSCONFIG_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from ps_config_utility.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("get_folders")
    def get_folders(self, identity):
        ...
"""
import functools
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("psconfig.perf")
main_logger = logging.getLogger("psconfig")

LOGGER_NAMES = ("psconfig", "ps_config_utility")


def get_log_level(verbose: bool = False) -> int:
    """Get console log level from environment."""
    if verbose:
        return logging.DEBUG
    level_str = os.environ.get("PSCONFIG_LOG_LEVEL", "WARNING").upper()
    return getattr(logging, level_str, logging.WARNING)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".ps-config-utility" / "ps-config-utility.log"
    path_str = os.environ.get("PSCONFIG_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (WARNING+ by default, respects PSCONFIG_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)

    Calling it again replaces the handlers installed by the previous call.
    """
    log_level = get_log_level(verbose)
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("PSCONFIG_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("PSCONFIG_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # StreamHandler defaults to stderr
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    for name in LOGGER_NAMES:
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()
        target.setLevel(logging.DEBUG)  # Capture all, handlers filter
        target.addHandler(console_handler)
        target.addHandler(file_handler)
        target.propagate = False

    main_logger.debug(
        f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
    )


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of a function.

    Args:
        operation: Name of the operation (e.g., "authenticate", "read_attribute")
        target: Optional label for the log line (inferred from self.server)

    Usage:
        @timed("find_engines")
        def _find_pattern(self, pattern):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            label = target
            if label is None and args and hasattr(args[0], "server"):
                label = args[0].server

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000  # ms
                perf_logger.debug(
                    f"{operation:20s} | {label or 'N/A':20s} | {elapsed:8.2f}ms | OK"
                )
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(
                    f"{operation:20s} | {label or 'N/A':20s} | {elapsed:8.2f}ms | FAIL: {e}"
                )
                raise

        return wrapper

    return decorator
