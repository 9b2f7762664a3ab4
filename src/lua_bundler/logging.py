"""Logging utilities for lua-bundler.

This module provides:
- Standardized log formats
- Verbosity levels support
- Performance timing
- File logging
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

# Standard log format
DEFAULT_FORMAT = "%(levelname)s [%(name)s] %(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
TRACE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"

# Custom TRACE level (more detailed than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Verbosity level mapping
VERBOSITY_LEVELS = {
    0: logging.WARNING,   # Default: warnings and errors only
    1: logging.INFO,      # -v: processed modules, cache hits, downloads
    2: logging.DEBUG,     # -vv: skipped references, resolved paths
    3: TRACE,             # -vvv: every scanned line
}


def get_level_from_verbosity(verbosity: int) -> int:
    """Convert verbosity count to logging level.

    Args:
        verbosity: Number of -v flags (0-3+)

    Returns:
        Logging level constant
    """
    return VERBOSITY_LEVELS.get(min(verbosity, 3), TRACE)


def configure_logging(
    level: int = logging.WARNING,
    log_file: str | Path | None = None,
) -> None:
    """Configure logging for lua-bundler.

    The console format gets more detailed as the level drops to DEBUG and
    TRACE. The log file always uses the detailed format.

    Args:
        level: Logging level for console and file
        log_file: Optional path to write logs to file

    Example:
        >>> configure_logging(level=logging.INFO)
        >>> configure_logging(level=logging.DEBUG, log_file="/tmp/bundler.log")
    """
    if level <= TRACE:
        format_string = TRACE_FORMAT
    elif level <= logging.DEBUG:
        format_string = DEBUG_FORMAT
    else:
        format_string = DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_string))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
        root_logger.addHandler(file_handler)


@contextmanager
def log_performance(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> Generator[None, None, None]:
    """Context manager for performance logging.

    Times an operation and logs the duration at INFO, also when the
    operation raises.

    Args:
        logger: Logger instance to use
        operation: Description of the operation being timed
        **context: Additional context to include in logs

    Example:
        >>> logger = logging.getLogger(__name__)
        >>> with log_performance(logger, "Bundling", entry="main.lua"):
        ...     pass
        INFO: Bundling completed in 0.004s (entry=main.lua)
    """
    start_time = time.perf_counter()

    try:
        yield
    finally:
        duration = time.perf_counter() - start_time
        message = f"{operation} completed in {duration:.3f}s"
        if context:
            message += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        logger.info(message)
