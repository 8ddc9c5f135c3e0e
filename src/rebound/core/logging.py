"""
Structured logging for rebound.

The engine emits one structlog event per state transition
(``execution.start``, ``execution.attempt_failed``,
``execution.retry_scheduled``, ``execution.bailout``, ``execution.exhausted``,
``execution.cancelled``, ``execution.finished``) with key/value fields rather
than formatted strings, so retry behaviour can be filtered and aggregated.

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="billing")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars      (policy=... bound by the engine)
          3. add_log_level / add_logger_name
          4. service tag            (service=...)
          5. JSONRenderer  |  ConsoleRenderer

Examples:
    >>> from rebound.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("execution.start", policy="fetch", max_attempts=3)

    Scoped context:

    >>> with LogContext(request_id="abc123"):
    ...     logger.info("execution.finished", outcome="bailed_out")

Guardrails:
    - Library code only calls ``get_logger``; ``configure_logging`` belongs
      to the application entry point
    - Without ``configure_logging`` structlog's defaults still print events

Tags:
    logging, structlog, observability, rebound

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class _ServiceTagger:
    """Processor stamping every event with the owning service's name."""

    def __init__(self, service: str):
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.service)
        return event_dict


def _processor_chain(*, service: str, json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso"))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _ServiceTagger(service),
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "rebound",
    add_timestamp: bool = True,
) -> None:
    """Route rebound's structlog events through the stdlib root logger.

    Args:
        level: Minimum level name; events below it are dropped before rendering
        json_format: One JSON object per line when True, coloured console
            lines when False; None picks JSON whenever stdout is not a terminal
        service: Value of the ``service`` key added to every event
        add_timestamp: Prefix events with an ISO-8601 ``timestamp``

    Raises:
        ValueError: If ``level`` is not a standard level name
    """
    if level.upper() not in _LEVELS:
        raise ValueError(f"Unknown log level: {level!r}")
    numeric_level = logging.getLevelName(level.upper())

    if json_format is None:
        json_format = not sys.stdout.isatty()

    # Not cached: module-level loggers must pick up a later reconfiguration.
    structlog.configure(
        processors=_processor_chain(
            service=service, json_format=json_format, add_timestamp=add_timestamp
        ),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def configure_from_settings(settings: Any = None) -> None:
    """Configure logging from ``ReboundSettings`` (``log_level``, ``log_format``)."""
    from rebound.core.settings import get_settings

    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
        service=settings.service_name,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a lazily configured structlog logger.

    Args:
        name: Dotted module path, shown as ``logger`` in rendered events
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Drop ``keys`` from the current logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Forget everything bound with :func:`bind_context`."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind key/values for the duration of a ``with`` (or ``async with``) block.

    Keys that were already bound are restored on exit instead of dropped, so
    nested executions keep the outer ``policy`` once the inner one finishes.
    """

    def __init__(self, **kwargs: Any):
        self._values = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._values)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
