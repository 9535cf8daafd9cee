"""Centralized logging configuration."""

import logging
import sys

from carechat.config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Library loggers that are chatty at INFO (one line per socket packet)
NOISY_LOGGERS = ("socketio", "engineio", "pymongo")


def setup_logging() -> logging.Logger:
    """Configure and return the chat service logger."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logger = logging.getLogger("carechat")
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.debug(f"Logging configured with level: {logging.getLevelName(level)}")

    return logger


# Shared logger instance
logger = setup_logging()
