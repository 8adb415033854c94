"""Logging initialization for the worker and scripts."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from clipguard.config import Settings

# Chatty per-request loggers from the HTTP/AWS stack.
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def _file_handler(settings: Settings) -> RotatingFileHandler:
    path = Path(str(settings.logging.file))
    if not path.is_absolute():
        path = Path(settings.log_dir) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(settings.logging.max_bytes),
        backupCount=int(settings.logging.backup_count),
        encoding="utf-8",
    )


def setup_logging(settings: Settings, *, level: str | None = None) -> logging.Logger:
    """Configure the `clipguard` logger tree once per process.

    Handlers are attached to `clipguard` only, so embedding applications keep
    control of the root logger. `level` overrides `LOG_LEVEL`.
    """
    logger = logging.getLogger("clipguard")
    if getattr(logger, "_clipguard_configured", False):
        return logger

    resolved = getattr(logging, str(level or settings.logging.level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(fmt=str(settings.logging.format), datefmt=str(settings.logging.datefmt))

    handlers: list[logging.Handler] = []
    if settings.logging.console:
        handlers.append(logging.StreamHandler())
    if settings.logging.file:
        handlers.append(_file_handler(settings))
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)

    logger.setLevel(resolved)
    logger.handlers = handlers
    logger.propagate = False
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    setattr(logger, "_clipguard_configured", True)
    return logger
