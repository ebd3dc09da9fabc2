"""structlog setup.

Learn: Every module does `logger = structlog.get_logger()` and logs
dotted event names with key/value context (`sse.connected`,
`heartbeat.write_failed`). This wires the processor chain once at
startup: request_id from contextvars, level, ISO timestamp, then a
pretty console renderer in development and JSON lines elsewhere.
"""

import logging

import structlog

from droneflow.config import settings


def configure_logging() -> None:
    """Configure structlog for the current environment."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        # JSON lines need the traceback flattened into a string field
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
