"""Logging configuration for frametrace.

Provides coloured console logging for interactive use and JSON output
for tracer runs whose logs are collected by another process. The JSON
switch applies to the optional log file as well as to stderr.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Any

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_output: bool = False,
    rich_traceback: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output, rotated at 100 MB
        json_output: If True, write one JSON record per line to every sink
        rich_traceback: If True, include variable values in tracebacks
    """
    # Remove default handler
    logger.remove()

    if json_output:
        logger.add(
            sys.stderr,
            format="{message}",
            level=level,
            serialize=True,
        )
    else:
        console_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
        logger.add(
            sys.stderr,
            format=console_format,
            level=level,
            colorize=True,
            backtrace=rich_traceback,
            diagnose=rich_traceback,
        )

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{message}" if json_output else FILE_FORMAT,
            level=level,
            serialize=json_output,
            rotation="100 MB",
            retention=5,
        )


def get_logger(name: str) -> Any:
    """Get a logger instance with the given name.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger instance configured for the module
    """
    return logger.bind(name=name)
