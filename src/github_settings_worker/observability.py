"""Structured logging setup for the worker.

All modules obtain their logger through get_logger(__name__) and log a short
event sentence plus keyword fields. configure_logging() is called once at
process start by main.py (or by tests that want readable output).
"""

import logging
import sys

import structlog


def configure_logging(level: str = "DEBUG", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ERROR).
        json_logs: Render one JSON object per line when True, otherwise a
            human-readable console format.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.DEBUG

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

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
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a named structured logger.

    Args:
        name: Logger name, conventionally the calling module's __name__.

    Returns:
        A structlog bound logger accepting keyword fields.
    """
    return structlog.get_logger(name)
