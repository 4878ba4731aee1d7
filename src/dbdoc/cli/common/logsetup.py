"""Logging setup for the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from dbdoc.cli.common.output import console
from dbdoc.core.commands import parse_log_level
from dbdoc.core.dispatcher import ROOT_LOGGER


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """
    Attach a RichHandler to the `dbdoc` logger and set its level.

    Calling this more than once only changes the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(parse_log_level(level))
    return logger
