"""
Structured logging setup using structlog.

tubeq modules log through structlog.get_logger(__name__) and never configure
logging themselves. Applications call configure_logging() once at start-up
to route those events through the standard library with a console or JSON
renderer.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from tubeq.config import TubeqSettings, get_settings


def configure_logging(settings: TubeqSettings | None = None) -> None:
    """Configure structlog and the root logger from settings (log_level, log_format)."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # redis-py is chatty at DEBUG about connection churn
    logging.getLogger("redis").setLevel(max(log_level, logging.INFO))


def bind_context(**kwargs: Any) -> None:
    """Bind key/value pairs (worker id, tube, ...) to every later log event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)
