"""Logging setup for the CLI and the MCP server."""

import sys
from pathlib import Path

from loguru import logger

LOG_FILENAME = "progress-tracker.log"


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Route loguru output to stderr and, optionally, a log file.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_file: Extra sink with timestamps.
    """
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="{level.icon} {message}")
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        )
