"""
Structured logging for photovault.

Every component logs snake_case events with keyword context through
structlog, e.g. ``migration_applied`` with ``version``/``name`` or
``photo_soft_deleted`` with ``photo_id``/``deleted_at``. Operators follow a
delete or a migration run by those keys, so the setup here keeps them
machine readable: JSON lines by default, a console renderer only when a
developer is watching a terminal.

``LOG_LEVEL`` picks the threshold and ``ENVIRONMENT`` the renderer; both can
be overridden by the caller.
"""

import inspect
import logging
import os
import sys
from datetime import datetime
from pathlib import PurePath
from typing import Any

import structlog

SERVICE_NAME = "photovault"

DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local")

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level_name: str | None = None) -> int:
    """
    Resolve a level name, falling back to ``LOG_LEVEL`` and then INFO.

    Unknown names resolve to INFO rather than failing startup.
    """
    name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return LEVELS.get(name, logging.INFO)


def is_development_environment() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in DEVELOPMENT_ENVIRONMENTS


def add_service_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag each event with the service so mixed log streams can be filtered."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def render_paths_and_times(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Turn blob paths and timestamps into plain strings.

    Staging paths in ``photo_finalize_deferred`` must read as paths, not reprs.
    """
    for key, value in event_dict.items():
        if isinstance(value, PurePath):
            event_dict[key] = str(value)
        elif isinstance(value, datetime):
            event_dict[key] = value.isoformat()
    return event_dict


def configure_structured_logging(log_level: str | None = None, json_output: bool | None = None) -> None:
    """
    Install the structlog processor chain for the whole process.

    Args:
        log_level: Level name; defaults to ``LOG_LEVEL``
        json_output: Force JSON (True) or the console renderer (False);
            defaults to JSON outside development or when stderr is not a terminal
    """
    level = get_log_level(log_level)
    if json_output is None:
        json_output = not (is_development_environment() and sys.stderr.isatty())

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_name,
        render_paths_and_times,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.getLogger().setLevel(level)

    get_logger("photovault.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(level),
        renderer="json" if json_output else "console",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (optional, defaults to calling module)

    Returns:
        structlog.BoundLogger: Configured logger instance
    """
    if name is None:
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")

    return structlog.get_logger(name)


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Emit a ``performance_metric`` event for a timed delete or migration step."""
    get_logger("photovault.performance").info(
        "performance_metric", operation=operation, duration_seconds=round(duration, 6), **context
    )


def log_error(error: Exception, context: dict[str, Any] | None = None, level: int = logging.ERROR) -> None:
    """
    Log a photovault error with its category, code and details.

    Args:
        error: Exception that occurred
        context: Extra keys, usually from ``ErrorInfo``
        level: Standard logging level; tracebacks are attached from ERROR up
    """
    error_context = {"error_type": type(error).__name__, "error_message": str(error)}
    if context:
        error_context.update(context)

    logger = get_logger("photovault.errors")
    if level >= logging.ERROR:
        logger.log(level, "error_occurred", **error_context, exc_info=error)
    else:
        logger.log(level, "error_occurred", **error_context)
