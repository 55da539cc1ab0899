"""Logging setup for the bridge.

Modules log through ``logging.getLogger(__name__)``; this module only
decides the level and attaches a console handler to the package logger.
"""

from __future__ import annotations

import logging
import os

from rich.logging import RichHandler

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def resolve_level(level: int | str | None = None) -> int:
    """Pick the log level: explicit value, then env, then INFO.

    ``GQLREST_DEBUG`` (any non-empty value) forces DEBUG;
    otherwise ``GQLREST_LOG_LEVEL`` is honoured when it names a known
    level.  Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return _LEVELS.get(level.lower(), logging.INFO)
    if os.environ.get("GQLREST_DEBUG"):
        return logging.DEBUG
    return _LEVELS.get(os.environ.get("GQLREST_LOG_LEVEL", "").lower(), logging.INFO)


def configure_logging(level: int | str | None = None) -> logging.Logger:
    """Attach a Rich console handler to the ``gqlrest`` logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("gqlrest")
    logger.setLevel(resolve_level(level))
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
