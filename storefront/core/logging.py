"""
Structured logging for the storefront service.

structlog renders every event through the standard library root logger:
coloured console output in development and JSON lines elsewhere. The
request id and the authenticated user id are bound as structlog context
variables by the HTTP middleware, so every event logged while serving a
request carries them.
"""

import logging
import sys
import time
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import UUID, uuid4

import structlog
from structlog.types import EventDict, Processor

from storefront.core.config import get_settings

SLOW_OPERATION_MS = 500

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "aiosqlite")


def stringify_domain_values(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render money, identifiers and enum members as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (Decimal, UUID)):
            event_dict[key] = str(value)
    return event_dict


def configure_logging() -> None:
    """Configure structlog and the root logger from settings."""
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        stringify_domain_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind the request id for the current request.

    Args:
        request_id: Incoming ``X-Request-ID`` value; a UUID is generated when empty

    Returns:
        The bound request id
    """
    request_id = request_id or str(uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def get_request_id() -> str:
    return structlog.contextvars.get_contextvars().get("request_id", "")


def set_user_id(user_id: Optional[str]) -> None:
    structlog.contextvars.bind_contextvars(user_id=user_id)


def clear_context() -> None:
    """Drop request scoped context at the end of a request."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """
    Log how long a block took.

    Blocks slower than ``SLOW_OPERATION_MS`` are logged as warnings and
    failures are logged with the exception type before re-raising.

    Example:
        >>> with log_performance(logger, "create_order", order_number=number):
        ...     order = await self._settle_and_persist(...)
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(
            "Operation failed",
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            error_type=type(e).__name__,
            **context,
        )
        raise

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    log = logger.warning if duration_ms > SLOW_OPERATION_MS else logger.debug
    log("Operation completed", operation=operation, duration_ms=duration_ms, **context)
