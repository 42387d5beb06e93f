"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | int = "WARNING", console: Console | None = None) -> None:
    """Send the logs of the library to a rich handler on stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("bik")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False
