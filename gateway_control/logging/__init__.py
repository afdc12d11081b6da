"""Centralized logging infrastructure for the management plane.

Implements LoggerProtocol on top of structlog. Components receive a logger by
constructor injection and fall back to the context logger when none is given.

Usage:
    from gateway_control.logging import configure_logging, get_component_logger

    # At application startup (once)
    configure_logging(level="INFO", json_output=True)

    # In a component constructor
    self._logger = get_component_logger("AdapterManagementService", logger)
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Generator, Optional

import structlog

from gateway_control.protocols import LoggerProtocol, RequestContext

# Module state
_CONFIGURED = False

# Context variables for request-scoped data
_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context",
    default=None
)

_current_logger: ContextVar[Optional[LoggerProtocol]] = ContextVar(
    "current_logger",
    default=None
)


class Logger:
    """LoggerProtocol implementation backed by structlog."""

    def __init__(
        self,
        base_logger: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize logger.

        Args:
            base_logger: Underlying structlog logger (created if None)
            context: Bound context fields
        """
        self._logger = base_logger or structlog.get_logger()
        self._context = context or {}

        if self._context:
            self._logger = self._logger.bind(**self._context)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, **kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._logger.critical(msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(msg, **kwargs)

    def bind(self, **kwargs: Any) -> "Logger":
        """Create child logger with additional context."""
        new_context = {**self._context, **kwargs}
        return Logger(
            base_logger=structlog.get_logger(),
            context=new_context,
        )


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = True,
    component_levels: Optional[Dict[str, str]] = None,
) -> None:
    """Configure logging for the management plane.

    This should be called ONCE at application startup; later calls are no-ops.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, console format
        component_levels: Override levels for specific stdlib loggers
    """
    global _CONFIGURED

    if _CONFIGURED:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
    )

    # Silence noisy libraries
    for noisy in ["kubernetes", "urllib3", "asyncpg", "sqlalchemy.engine"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    for component, comp_level in (component_levels or {}).items():
        logging.getLogger(component).setLevel(
            getattr(logging, comp_level.upper(), log_level)
        )

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def create_logger(
    component: str,
    **context: Any,
) -> LoggerProtocol:
    """Create a logger for dependency injection.

    Args:
        component: Component name (e.g., "KubeClient")
        **context: Additional context to bind

    Returns:
        LoggerProtocol implementation
    """
    return Logger(context={"component": component, **context})


def get_current_logger() -> LoggerProtocol:
    """Get current logger for context-based access.

    Returns:
        LoggerProtocol - either the context-bound logger or a default.
    """
    logger = _current_logger.get()
    if logger is None:
        return Logger()
    return logger


def set_current_logger(logger: LoggerProtocol) -> None:
    """Set current logger for context-based access."""
    _current_logger.set(logger)


def get_component_logger(
    component: str,
    logger: Optional[LoggerProtocol] = None,
) -> LoggerProtocol:
    """Get a logger bound to a component name.

    This is the canonical way to initialize a logger in services and stores.

    Args:
        component: Component name (e.g., "AdapterManagementService")
        logger: Optional injected logger. If None, uses context logger.

    Returns:
        LoggerProtocol bound to the component name
    """
    base_logger = logger or get_current_logger()
    return base_logger.bind(component=component)


def get_request_context() -> Optional[RequestContext]:
    """Get current request context, None outside a request scope."""
    return _request_context.get()


@contextmanager
def request_scope(
    ctx: RequestContext,
    logger: LoggerProtocol,
) -> Generator[RequestContext, None, None]:
    """Context manager for request scope.

    Sets the request context, the current logger, and structlog contextvars
    for the duration of the scope, then restores the previous values.

    Args:
        ctx: RequestContext for the request
        logger: Logger bound to the request context

    Yields:
        The RequestContext for use within the scope
    """
    token_ctx = _request_context.set(ctx)
    token_log = _current_logger.set(logger)
    bound = structlog.contextvars.bind_contextvars(
        request_id=ctx.request_id,
        caller=ctx.caller,
    )

    try:
        yield ctx
    finally:
        structlog.contextvars.reset_contextvars(**bound)
        _request_context.reset(token_ctx)
        _current_logger.reset(token_log)


__all__ = [
    # Configuration
    "configure_logging",
    # Logger creation
    "create_logger",
    "get_component_logger",
    # Types
    "Logger",
    # Context
    "get_current_logger",
    "set_current_logger",
    "get_request_context",
    "request_scope",
]
