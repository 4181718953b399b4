"""
coreorm/utils/logger.py
-----------------------
Centralized logging configuration.
All modules should use `get_logger(__name__)` to obtain a logger instance.
Handlers are attached to the package logger only, so applications keep
control of the root logger.
"""

import logging
import sys

from coreorm.config import LOG_LEVEL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_PACKAGE_LOGGER = "coreorm"
_initialized = False


def _init_logging() -> None:
    """Configure the package logger once."""
    global _initialized
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    package = logging.getLogger(_PACKAGE_LOGGER)
    package.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    package.addHandler(handler)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A configured logging.Logger.
    """
    _init_logging()
    return logging.getLogger(name)
