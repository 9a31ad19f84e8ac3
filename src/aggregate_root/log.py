"""Structured logging for aggregate roots.

The library only emits through structlog; applications call `configure_logging`
once at startup to choose level and rendering.
"""

from __future__ import annotations

import logging
import sys
from typing import Any
from typing import Optional

import structlog

from aggregate_root.config import AggregateSettings
from aggregate_root.config import get_settings


def configure_logging(settings: Optional[AggregateSettings] = None) -> None:
    """Configure structlog on top of the stdlib logging module.

    Args:
        settings: Settings to read `log_level` and `log_format` from. Defaults to
            the process-wide settings.
    """
    settings = settings or get_settings()
    log_level = logging.getLevelNamesMapping()[settings.log_level]

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger for a module."""
    return structlog.get_logger(name)
