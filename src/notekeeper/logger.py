"""Application logging utilities."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from . import config
from .data_paths import log_dir

_LOGGER_NAME = "notekeeper"


def log_file_path() -> Path:
    """Rotating log file, named after the application."""
    return log_dir() / f"{config.APP_NAME.lower()}.log"


def _level(name: str) -> Optional[int]:
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


def configure_logging() -> logging.Logger:
    """Configure a rotating log file in the user data directory.

    The level comes from ``NOTEKEEPER_LOG_LEVEL``; unknown names fall back
    to ``INFO``.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    level = _level(config.LOG_LEVEL)
    logger.setLevel(logging.INFO if level is None else level)

    handler = RotatingFileHandler(
        log_file_path(),
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if level is None:
        logger.warning("Unknown log level %r; using INFO", config.LOG_LEVEL)
    logger.info("%s %s logging to %s", config.APP_NAME, config.APP_VERSION, handler.baseFilename)
    return logger
