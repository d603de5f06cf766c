"""
Console logging setup for the morphic command-line tools.

Library modules only create module-level loggers; handlers are installed
here, by the application entry point.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO", fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``morphic`` logger hierarchy.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        fmt: Optional format string (default: timestamp, level, logger name).

    Returns:
        The configured root ``morphic`` logger.
    """
    logger = logging.getLogger("morphic")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running setup replaces the handler instead of stacking duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
