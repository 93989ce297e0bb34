# app/core/logging.py
"""
Application-wide logging configuration.

Purpose:
- Centralize logging setup for the API process and the JIRA sync script
- Provide consistent log output
- Make it easy to increase verbosity in dev without code changes
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at DEBUG and rarely useful here.
_QUIET_LOGGERS = ("aiosqlite", "httpcore", "httpx")


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the application.

    Args:
        level: Logging level as a string (e.g. "INFO", "DEBUG", "WARNING").

    Behavior:
    - Sets a single stream handler to stdout (container-friendly)
    - Applies a consistent, readable log format
    - Safe to call more than once (existing handlers are replaced)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Clear any existing handlers to avoid duplicate logs
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))
