from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "docgraph"


def setup_logging(level: str | int = logging.WARNING, *, console: Console | None = None) -> logging.Logger:
    """Route the ``docgraph`` logger hierarchy through a single RichHandler.

    Safe to call more than once; previous handlers are replaced.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(level)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
