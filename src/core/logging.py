"""
Structured logging configuration using structlog.

Development runs get a colored console renderer; production runs get
JSON lines. Ranking requests bind ``user_id`` / ``request_id`` once via
``request_context`` so every degradation log line carries them.

Usage:
    from core.logging import configure_logging, get_logger, request_context

    configure_logging(json_logs=False)
    logger = get_logger(__name__)

    with request_context(user_id="u1", request_id="r1"):
        logger.info("Contextual filter relaxed", intent="gym", kept=4)
"""

import contextlib
import logging
import sys
from typing import Any, Iterator, Optional

import structlog
from structlog.types import Processor


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_logs: If True, output JSON format (for production).
                   If False, output colored console format (for development).
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_timestamp: Whether to include timestamp in logs
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # The Supabase client logs every HTTP round trip at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_from_settings() -> None:
    """Configure logging from the cached application settings."""
    from config.settings import get_settings

    settings = get_settings()
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Message", key="value")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent logs in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    """Unbind specific context variables."""
    structlog.contextvars.unbind_contextvars(*keys)


@contextlib.contextmanager
def request_context(**kwargs: Any) -> Iterator[None]:
    """
    Bind request-scoped fields for the duration of a ranking call.

    Only the keys bound here are removed on exit, so an outer context
    (e.g. a worker-level ``bind_context``) survives.
    """
    fields = {k: v for k, v in kwargs.items() if v is not None}
    bind_context(**fields)
    try:
        yield
    finally:
        unbind_context(*fields.keys())


class LoggerMixin:
    """
    Mixin class that provides a logger property.

    Usage:
        class PreferenceStore(LoggerMixin):
            def fetch(self):
                self.logger.info("Fetching")
    """

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)
