"""
Structured Logging Setup

Engine modules log through ``logging.getLogger(__name__)``. The host
application calls ``setup_json_logging()`` once at startup so that those
records, and the structlog events emitted by the admin router, are written
to stdout as one JSON object per line.
"""

import logging
import os
import sys
from typing import List, Optional

import structlog
from pythonjsonlogger import jsonlogger

_RECORD_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_RENAMED_FIELDS = {"asctime": "timestamp", "levelname": "level"}


def _structlog_processors() -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def _stdlib_json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(fmt=_RECORD_FORMAT, rename_fields=_RENAMED_FIELDS)
    )
    return handler


def setup_json_logging(
    log_level: str = "INFO",
    service_name: str = "cache-engine",
    environment: Optional[str] = None,
    version: str = "1.0.0",
) -> None:
    """Route stdlib and structlog output through JSON renderers.

    Replaces any handlers already on the root logger.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Bound to every structlog event as ``service``
        environment: Bound as ``environment`` (defaults to $ENVIRONMENT)
        version: Bound as ``version``
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=_structlog_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stdlib_json_handler())
    root.setLevel(level)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=environment or os.getenv("ENVIRONMENT", "development"),
        version=version,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Structlog logger for request-facing code."""
    return structlog.get_logger(name)


def log_cache_admin_action(logger: structlog.BoundLogger, action: str, provider: str, **extra) -> None:
    """Record an administrative cache operation.

    ``clear`` is destructive and logged at warning; everything else at info.
    """
    emit = logger.warning if action == "clear" else logger.info
    emit("cache_admin_action", action=action, provider=provider, **extra)
