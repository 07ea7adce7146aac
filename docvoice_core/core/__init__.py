# Pipeline core utilities

from docvoice_core.core.logging import (
    LogFormat,
    LogLevel,
    get_logger,
    log_context,
    setup_logging,
)

__all__ = [
    "LogFormat",
    "LogLevel",
    "get_logger",
    "log_context",
    "setup_logging",
]
