"""
Logging setup shared by all modules.

Module loggers are children of the package logger, which owns the only
handler, so records are emitted once.
"""

import logging
import sys

from smart_scheduler.core.config import get_settings

PACKAGE_LOGGER = "smart_scheduler"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """
    Get a module logger, configuring the package logger on first use.

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger for the given name
    """
    base = logging.getLogger(PACKAGE_LOGGER)
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        base.addHandler(handler)
        base.setLevel(get_settings().LOG_LEVEL)
    return logging.getLogger(name)


logger = setup_logger(PACKAGE_LOGGER)
