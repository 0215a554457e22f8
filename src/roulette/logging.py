"""Structured logging configuration for Roulette.

This module configures structlog with support for:
- JSON and console output formats
- File rotation based on size
- Correlation IDs scoping one incoming signal or one detection sweep
- Assignment, reviewer, and signal context binding

Handlers (stream or rotating file) come from stdlib logging; every log
call goes through structlog.

Example usage:
    >>> from roulette.config import LoggingConfig
    >>> from roulette.logging import setup_logging, get_logger, correlation_scope
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="json"))
    >>> logger = get_logger(__name__)
    >>> with correlation_scope("signal-C1-1700000000.000100"):
    ...     bind_assignment_context("A-1", repository_id="R-1", reviewer_id="U-2")
    ...     bind_signal_context("eyes", actor_id="U-2", action="added")
    ...     logger.info("assignment_transitioned", to_status="in_review")
    ...     clear_signal_context()
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from roulette.config import LoggingConfig

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Keys bound while one signal is processed; cleared together afterwards
SIGNAL_CONTEXT_KEYS: tuple[str, ...] = (
    "assignment_id",
    "repository_id",
    "reviewer_id",
    "signal",
    "actor_id",
    "signal_action",
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add correlation_id to log event if set in context.

    Args:
        logger: Logger instance (unused, required by structlog protocol)
        method_name: Log method name (unused, required by structlog protocol)
        event_dict: Current event dictionary to augment

    Returns:
        Event dictionary with correlation_id added if available
    """
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID for current context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Tag every log inside the block with ``correlation_id``.

    The previous correlation ID is restored on exit, so scopes nest.
    """
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


def bind_assignment_context(
    assignment_id: str,
    repository_id: str | None = None,
    reviewer_id: str | None = None,
) -> None:
    """Bind the assignment being worked on to all subsequent logs.

    Identifiers left as None are not bound.

    Args:
        assignment_id: Assignment identifier to bind
        repository_id: Optional repository identifier
        reviewer_id: Optional identifier of the assigned reviewer
    """
    context = {
        "assignment_id": assignment_id,
        "repository_id": repository_id,
        "reviewer_id": reviewer_id,
    }
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in context.items() if value is not None}
    )


def bind_signal_context(signal: str, actor_id: str, action: str) -> None:
    """Bind the reviewer signal being processed to all subsequent logs."""
    structlog.contextvars.bind_contextvars(
        signal=signal, actor_id=actor_id, signal_action=action
    )


def clear_signal_context() -> None:
    """Drop everything bound for the signal that was just processed."""
    structlog.contextvars.unbind_contextvars(*SIGNAL_CONTEXT_KEYS)


def _build_handler(config: LoggingConfig) -> logging.Handler:
    if config.file is None:
        return logging.StreamHandler(sys.stdout)

    config.file.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=config.file,
        maxBytes=config.rotation_size_mb * 1024 * 1024,
        backupCount=config.retention_count,
        encoding="utf-8",
    )


def _build_renderer(config: LoggingConfig) -> Any:
    if config.format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog with the given configuration.

    Replaces any handlers on the root logger with a single stream or
    rotating file handler, then installs the processor chain: level,
    logger name, ISO timestamp, bound context, correlation ID, exception
    formatting, and the JSON or console renderer.

    Args:
        config: Logging configuration from RouletteConfig
    """
    log_level = getattr(logging, config.level)

    handler = _build_handler(config)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _build_renderer(config),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
