"""
Package wide logger for GitDigger.
"""

import logging


LOGGER_NAME = "GitDigger"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str = LOGGER_NAME, level: int = logging.INFO) -> logging.Logger:
    """Return the named logger with a single stream handler attached."""

    _logger = logging.getLogger(name)
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _logger.addHandler(handler)
        _logger.setLevel(level)
    return _logger


logger = setup_logger()


__all__ = ["logger", "setup_logger", "LOGGER_NAME"]
