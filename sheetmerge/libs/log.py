import logging
import sys

from sheetmerge._config import config


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing to stderr at the configured level"""
    logger = logging.getLogger(name)
    logger.setLevel(config.LOGGING_LEVEL)

    # Loggers are cached by name, so only attach the handler once
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
