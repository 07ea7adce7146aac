"""
Pipeline logging

Structured logging for the pipeline. structlog renders JSON in production
and a human-readable console format during development; stdlib loggers
from third-party libraries are routed through the same handler.
"""

import logging
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

import structlog


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    CONSOLE = "console"


NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "asyncio",
    "aiosqlite",
    "google",
    "sqlalchemy.engine",
)


def setup_logging(
    level: str = "INFO",
    format: str = LogFormat.CONSOLE.value,
    service_name: Optional[str] = None,
) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json, console)
        service_name: Service name bound to every log entry
    """
    log_level = getattr(logging, level.upper())

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == LogFormat.JSON or format == "json":
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
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

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info(
        "logging_configured",
        level=level.upper(),
        format=str(format),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to a module name."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """
    Bind values to every log entry emitted inside the block.

    Usage:
        with log_context(submission_id=42):
            logger.info("clone_started")
    """
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


__all__ = [
    "LogLevel",
    "LogFormat",
    "setup_logging",
    "get_logger",
    "log_context",
]
