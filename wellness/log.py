"""Logging setup shared by the service and the data access layer."""

import logging
import sys

LOGGER_NAME = "wellness"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str | int = logging.INFO) -> logging.Logger:
    """
    Configure the package logger once and return it.

    Args:
        level: Log level name or number.

    Returns:
        logging.Logger: The ``wellness`` logger.
    """
    log = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    log.setLevel(level)
    if log.handlers:
        return log

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    log.addHandler(handler)
    return log


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger for a module name."""
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
