"""Structured logging setup.

Modules obtain a logger with ``get_logger(__name__)``; messages may carry
key/value context::

    logger.info("Event ingested", event_id=42, symbol="BTC")
"""
import logging
import sys

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure stdlib logging and structlog processors.

    Args:
        level: Minimum log level name (DEBUG, INFO, ...)
        json_output: Render JSON lines instead of the console renderer
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str):
    """Return a structlog logger bound to the module name."""
    if not _configured:
        from signal_feed.config.settings import get_settings

        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    return structlog.get_logger().bind(module=name)
