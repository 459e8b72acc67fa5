"""Logging configuration for the speedcheck command line."""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str = "WARNING") -> int:
    """Route log records to stderr through rich.

    Unknown level names fall back to WARNING.  Returns the numeric level.
    """
    numeric = _LEVELS.get(level.upper(), logging.WARNING)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=numeric,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
        force=True,
    )
    # aiohttp's access/client loggers are noisy at DEBUG.
    logging.getLogger("aiohttp").setLevel(max(numeric, logging.INFO))

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(numeric)
    )
    return numeric
