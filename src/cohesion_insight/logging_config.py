"""
Logging setup for Cohesion Insight.

Log records go to stderr through rich, so the report on stdout stays
machine-readable. Library modules only call ``get_logger(__name__)``; the CLI
calls ``setup_logging`` once per run.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "cohesion_insight"


def setup_logging(
    verbose: bool = False, quiet: bool = False, console: Optional[Console] = None
) -> logging.Logger:
    """
    Attach a rich handler to the ``cohesion_insight`` logger.

    Args:
        verbose: DEBUG level, with timestamps, source paths and local
            variables in tracebacks
        quiet: ERROR level only (wins over ``verbose``)
        console: Console to log to (default: a fresh stderr console)

    Returns:
        The package root logger
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        # unit ids and messages may contain brackets
        markup=False,
        show_time=verbose,
        show_path=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``cohesion_insight`` namespace (the root one for ``None``)."""
    if name is None:
        return logging.getLogger(_ROOT_LOGGER)
    if not name.startswith(_ROOT_LOGGER):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
