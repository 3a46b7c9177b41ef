"""Centralized logging for servicehub.

Implements LoggerProtocol on top of structlog. Components receive a logger
by injection and bind their component name; code without an injected logger
falls back to the context logger.

Usage:
    from servicehub.logging import configure_logging, get_component_logger

    configure_logging("DEBUG", json_output=False)
    logger = get_component_logger("ServiceRegistry")
    logger.info("service_reported", address="http://svc1.local")
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

from servicehub.protocols import LoggerProtocol

# Module state
_CONFIGURED = False

_current_logger: ContextVar[Optional[LoggerProtocol]] = ContextVar(
    "current_logger",
    default=None
)

# Libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "websockets", "asyncio")


class Logger:
    """LoggerProtocol implementation backed by a structlog bound logger.

    Keys bound here (component, service_id, ...) travel with every event;
    per-task keys come from structlog contextvars (see ``service_scope``).
    """

    def __init__(
        self,
        bound: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self._context: Dict[str, Any] = dict(context or {})
        self._bound = (bound or structlog.get_logger()).bind(**self._context)

    def debug(self, event: str, **fields: Any) -> None:
        self._bound.debug(event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._bound.info(event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._bound.warning(event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._bound.error(event, **fields)

    def exception(self, event: str, **fields: Any) -> None:
        self._bound.exception(event, **fields)

    def bind(self, **fields: Any) -> "Logger":
        """Child logger carrying this logger's keys plus ``fields``."""
        return Logger(context={**self._context, **fields})


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = True,
    force: bool = False,
) -> None:
    """Configure stdlib logging and structlog.

    Call once at application startup. Subsequent calls are ignored unless
    ``force`` is set.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, render JSON lines; otherwise a console format
        force: Reconfigure even if already configured
    """
    global _CONFIGURED

    if _CONFIGURED and not force:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
        force=force,
    )

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

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

    _CONFIGURED = True


def create_logger(component: str, **context: Any) -> LoggerProtocol:
    """Create a logger for dependency injection."""
    return Logger(context={"component": component, **context})


def get_current_logger() -> LoggerProtocol:
    """Get the context-bound logger, or a default one."""
    logger = _current_logger.get()
    if logger is None:
        return Logger()
    return logger


def set_current_logger(logger: LoggerProtocol) -> None:
    _current_logger.set(logger)


def get_component_logger(
    component: str,
    logger: Optional[LoggerProtocol] = None,
) -> LoggerProtocol:
    """Get a logger bound to a component name.

    This is the canonical way to initialize a logger in servicehub classes.

    Args:
        component: Component name (e.g., "ServiceRegistry", "SpecClient")
        logger: Optional injected logger. If None, uses the context logger.
    """
    base_logger = logger or get_current_logger()
    return base_logger.bind(component=component)


from servicehub.logging.context import service_scope  # noqa: E402

__all__ = [
    "configure_logging",
    "create_logger",
    "get_component_logger",
    "get_current_logger",
    "set_current_logger",
    "Logger",
    "service_scope",
]
