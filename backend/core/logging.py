# backend/core/logging.py

import logging
import os
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# One line per rewrite request or Redis publish at INFO
LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "redis": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def _level_from_env(name: str, default: str = "INFO") -> int:
    return getattr(logging, os.getenv(name, default).upper(), logging.INFO)


def setup_logging() -> None:
    """
    Configure logging for the chat backend.

    ``LOG_LEVEL`` sets the level of the ``backend.*`` loggers (sends, gate
    decisions, dispatches, relay traffic). Output goes to stdout. When a
    server such as Uvicorn has already installed handlers, only levels are
    adjusted.
    """
    level = _level_from_env("LOG_LEVEL")

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    logging.getLogger("backend").setLevel(level)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Module logger, e.g. ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
