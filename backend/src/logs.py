"""Structured logging setup."""

from __future__ import annotations

import logging

import structlog

from screendiff.errors import InvalidConfigurationError

PACKAGE_LOGGER = "screendiff"


def configure_logging(verbose: bool = False, level: str | None = None) -> None:
    """
    Configure structured logging for screendiff.

    Args:
        verbose: Render human-readable console output at DEBUG instead of JSON at INFO
        level: Explicit level name for the screendiff loggers (e.g. "WARNING"),
            overriding the level implied by ``verbose``
    """
    level_name = (level or ("DEBUG" if verbose else "INFO")).upper()
    level_value = logging.getLevelName(level_name)
    if not isinstance(level_value, int):
        raise InvalidConfigurationError(f"Unknown log level: {level}")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # basicConfig is a no-op when the root logger already has handlers.
    logging.basicConfig(level=level_value)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level_value)
