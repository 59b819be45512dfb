"""Logging configuration shared by the CLI and the HTTP server."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Logger:
    """
    Install a rich console handler on the root logger.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        console: Console to write to (stderr console if None)

    Returns:
        The package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("haulmatch")
