"""Logging configuration for monobuild.

Log records of every monobuild module go through the ``monobuild`` logger,
rendered by rich on stderr.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: str = "INFO", console: Console | None = None) -> logging.Logger:
    """Set up the monobuild logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        console: Console to render to; defaults to stderr.

    Returns:
        The root monobuild logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("monobuild")
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format=DATE_FORMAT,
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    logger.debug("Logging initialized (level=%s)", level)
    return logger


__all__ = ["setup_logging"]
