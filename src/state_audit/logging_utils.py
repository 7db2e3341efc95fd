"""Logging helpers for the state_audit engine."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import Any

from state_audit.config import load_settings

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging() -> None:
    """Configure logging for the engine."""
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)


def log_event(logger: logging.Logger, level: int, event: str, /, **params: Any) -> None:
    """Log an engine event.

    With structured logging the message is the bare event name and ``params``
    travel in the record's ``extra``; otherwise they are rendered inline as
    ``key=value`` pairs.
    """
    if not logger.isEnabledFor(level):
        return
    if load_settings().logging.structured:
        logger.log(level, event, extra={"params": params})
        return
    if not params:
        logger.log(level, event)
        return
    rendered = " ".join(f"{key}={value}" for key, value in params.items())
    logger.log(level, "%s %s", event, rendered)
