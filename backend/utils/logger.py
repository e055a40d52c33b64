"""Process-wide logging setup shared by services and controllers."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from backend.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root and server loggers once.

    Services log pipe-separated ``key=value`` records; uvicorn loggers are
    aligned to the same level so request lines interleave with them.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(resolved_level)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
