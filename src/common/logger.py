"""Logging utilities with rich console output.

This module provides a centralized logging configuration that combines
Python's standard logging with rich's console handler.

Usage:
    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Opened connection 'default_connection'")
    logger.warning("Table users already exists")
    logger.error("Commit failed", exc_info=True)
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Global console instance for consistent output
console = Console(stderr=True)


def _rich_handler(show_time: bool, show_path: bool) -> RichHandler:
    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,  # log lines carry raw SQL, whose brackets are not markup
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Get a configured logger with rich output.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, uses environment variable LOG_LEVEL or defaults to INFO.
        show_time: Show timestamp in log output
        show_path: Show file path in log output

    Returns:
        Configured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Transaction committed")
        Transaction committed
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers if logger already configured
    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger.setLevel(level)
    logger.addHandler(_rich_handler(show_time, show_path))

    # Allow propagation for test frameworks (pytest caplog)
    logger.propagate = True

    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Setup logging configuration for an embedding application.

    Call once at startup, before opening connections.

    Args:
        level: Default logging level for all modules
        log_file: Optional file path to also log to a file
    """
    level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_rich_handler(show_time=True, show_path=False))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)
