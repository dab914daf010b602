"""
Logging setup for the optionbook CLI and web app.

Modules log through ``logging.getLogger(__name__)``; this module only decides
where records go. Console output goes through rich so it matches the CLI tables.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV_VAR = "OPTIONBOOK_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(name)s - %(message)s"

_HANDLER_NAME = "optionbook"


def resolve_level(level: Optional[Union[str, int]] = None) -> int:
    """Return a numeric level from ``level``, the environment, or the default."""
    if isinstance(level, int):
        return level
    name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL).strip().upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {name}")
    return resolved


def setup_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Attach a single rich stderr handler to the ``optionbook`` logger.

    Safe to call repeatedly; the handler is replaced rather than duplicated.
    """
    logger = logging.getLogger("optionbook")
    logger.setLevel(resolve_level(level))
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger
