"""Logging setup for the command line and the TUI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"
DATE_FORMAT = "[%X]"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_level(level: str | int | None, default: int = logging.WARNING) -> int:
    if level is None:
        return default
    if isinstance(level, int):
        return level
    return logging.getLevelName(level.upper()) if level.upper() in LEVELS else default


def setup_logging(level: str | int | None = None, to_stderr: bool = True) -> None:
    """Configure the ``orbchat`` logger.

    Args:
        level: Threshold name or number (default: WARNING)
        to_stderr: Attach a RichHandler on stderr, leaving stdout for replies.
            The TUI passes False and installs its own panel handler.
    """
    root = logging.getLogger("orbchat")
    root.handlers.clear()
    root.setLevel(parse_level(level))
    root.propagate = False

    if to_stderr:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
