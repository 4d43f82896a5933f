"""
Logging — structlog configuration for applications using apiresult.

The library itself only calls structlog.get_logger(); nothing is configured
on import. Applications call configure_structlog() once at startup:

    from apiresult.logs import configure_structlog

    configure_structlog()                 # level and renderer from ApiResultSettings
    configure_structlog("DEBUG", "json")  # explicit
"""

from __future__ import annotations

import logging
from typing import Literal

import structlog

from apiresult.config import get_settings


def configure_structlog(
    log_level: str | None = None,
    renderer: Literal["console", "json"] | None = None,
) -> None:
    """
    Configure structlog for structured logging.

    In production: JSON lines to stdout (machine-readable).
    In development: colored, human-readable console output.
    Unknown level names fall back to INFO.
    """
    settings = get_settings()
    if log_level is None:
        level = settings.log_level_number
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)
    final_renderer = renderer or settings.log_renderer

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if final_renderer == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
