"""Structured logging for the store and cache services.

Every module logs through a structlog logger obtained with ``get_logger``;
store and cache events carry the table, item id or cache key as key/value
pairs instead of formatting them into the message.
"""

import sys
import structlog
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple
from autoscale_store.core.config import Settings

# Database drivers log every statement at INFO/DEBUG
DRIVER_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "sqlalchemy.pool")


def _handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    return handlers


def _renderer(log_format: str) -> Tuple[List[Any], List[Any]]:
    """Leading and trailing processors for the chosen output format."""
    if log_format == "json":
        return [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ], [structlog.processors.JSONRenderer()]
    return [
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    ], [structlog.dev.ConsoleRenderer(
        colors=False,
        pad_event=35,
        exception_formatter=structlog.dev.plain_traceback
    )]


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging at the configured level."""
    level = getattr(logging, settings.log_level)

    handlers = _handlers(settings.log_file)
    for handler in handlers:
        handler.setLevel(level)
    logging.basicConfig(level=level, handlers=handlers, format="%(message)s")

    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    leading, trailing = _renderer(settings.log_format)
    structlog.configure(
        processors=[
            *leading,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            *trailing,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    """Log how long an origin API call took."""
    logger.info(
        "Origin call completed",
        operation=operation,
        execution_time_seconds=round(end_time - start_time, 4),
        **kwargs
    )


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log a read, write or delete of a cache entry."""
    if hit is not None:
        kwargs["cache_hit"] = hit
    logger.debug("Cache operation", operation=operation, cache_key=key, **kwargs)


def log_store_rejection(logger: structlog.BoundLogger, operation: str, table: str,
                        item_id: Optional[str], reason: str, **kwargs) -> None:
    """Log a write the store refused because the item changed underneath it."""
    logger.warning(
        "Store write rejected",
        operation=operation,
        table=table,
        id=item_id,
        reason=reason,
        **kwargs
    )
