"""
Logging Configuration

Structured logging setup shared by the engine, storage backends and the
console host. Supports JSON output for production and a human-readable
console format for development.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional

import structlog


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    PRETTY = "pretty"


# Loggers that are too chatty at DEBUG
NOISY_LOGGERS = ("asyncio", "redis")


def _renderer(format: str) -> Any:
    if format == LogFormat.JSON or format == "json":
        return structlog.processors.JSONRenderer()
    if format == LogFormat.PRETTY or format == "pretty":
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    raise ValueError(f"Unknown log format: {format}")


def setup_logging(
    level: str = "INFO",
    format: str = LogFormat.PRETTY.value,
    service_name: Optional[str] = None,
) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json, pretty)
        service_name: Bound on every log entry when given
    """
    numeric_level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info(
        "logging_configured",
        level=level,
        format=format,
    )


__all__ = [
    "LogFormat",
    "setup_logging",
]
