"""Logging setup: stdlib logging rendered through rich on stderr."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "darwin_rebuild"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Configure the package logger.

    Info records are printed tersely; ``verbose`` enables debug records
    with timestamps and source locations.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=verbose,
        show_level=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger
