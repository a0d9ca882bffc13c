"""
Cronspine Logging - Structured logging for the scheduling core.

Manifesto:
    A scheduler's behaviour is only observable through its logs and its
    audit trail. Every scheduling module logs through ``get_logger`` so that
    tick activity, job transitions and persistence failures come out as
    structured events that carry ``job_id`` / ``job_name`` fields instead of
    interpolated strings.

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │ configure_logging(level="INFO", json_format=True,          │
        │                   service="cronspine")                     │
        │                                                             │
        │     ↓                                                       │
        │ structlog configured with processor chain:                  │
        │   1. TimeStamper(iso)                                       │
        │   2. add_log_level / add_logger_name                        │
        │   3. add_service_metadata                                   │
        │   4. elasticsearch_compatible (JSON only)                   │
        │   5. JSONRenderer (or ConsoleRenderer for dev)              │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> from cronspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("cron_job_executed", job_id="abc", duration_ms=12)

Tags:
    logging, structlog, observability, json-logging, cronspine

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "cronspine"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")

    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")

    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cronspine",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging too
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        structlog BoundLogger
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(job_id="abc123")
        logger.info("cron_tick_started")  # Includes job_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(job_id="abc123", job_name="nightly"):
            logger.info("cron_job_executing")
            logger.info("cron_job_executed")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())

    async def __aenter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    async def __aexit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
