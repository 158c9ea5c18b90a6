"""Structured logging setup for the SDK.

The SDK only obtains loggers; it never configures logging on import. Hosts
that want the SDK's preferred output call configure_logging() once at
startup (or set BRIDGEE_CONFIGURE_LOGGING=true and let the factory do it).
"""

import logging
import sys

import structlog

from bridgee_sdk.settings import Settings


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging with the configured renderer."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_json
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
