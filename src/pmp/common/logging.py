"""
Structured logging with per-request correlation IDs.

Built on structlog. Renders key/value console lines by default and JSON
lines when PMP_OBSERVABILITY_JSON_LOGS=true. Log output goes to stderr so
that CLI commands can write machine-readable results to stdout.

Usage:
    from pmp.common.logging import get_logger

    logger = get_logger(__name__, component="ingestion")
    logger.info("Cached message", topic="cables", date="2026-02-28")

The API middleware sets a correlation ID per request; every line logged
while that request is in flight carries it:

    set_correlation_id("req-123")
    logger.info("Serving request")   # ... correlation_id=req-123
    clear_correlation_id()
"""

import contextvars
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from pmp.common.config import ObservabilityConfig, config

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "pmp_correlation_id", default=None
)


# ==============================================================================
# Correlation IDs
# ==============================================================================


def set_correlation_id(correlation_id: str) -> None:
    """Attach correlation_id to log lines from the current thread or task."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def _inject_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    correlation_id = _correlation_id.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


# ==============================================================================
# Configuration
# ==============================================================================


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(observability: Optional[ObservabilityConfig] = None) -> None:
    """
    (Re)configure structlog and the stdlib root logger.

    Called by each entry point (API lifespan, CLI callback) once settings
    are loaded; safe to call more than once.

    Args:
        observability: Logging settings (defaults to global config)
    """
    observability = observability or config.observability
    level = getattr(logging, observability.log_level)

    # stdlib loggers (uvicorn, redis) share the stream
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_correlation_id,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if observability.json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


# ==============================================================================
# Loggers
# ==============================================================================


class PMPLogger:
    """
    Component-scoped wrapper over a lazy structlog logger.

    Every line carries the component it was created for (api, cache,
    consumer, ingestion, sync), which is what log queries filter on.
    Loggers are created at import time but resolve processors and level on
    each call, so configure_logging() applies to them retroactively.
    """

    def __init__(self, logger: Any):
        self._logger = logger

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(message, **kwargs)


def get_logger(name: str, component: Optional[str] = None, **context: Any) -> PMPLogger:
    """
    Structured logger for a module.

    Args:
        name: Module name (typically __name__)
        component: Component label bound to every line
        **context: Extra key/values bound to every line

    Example:
        logger = get_logger(__name__, component="sync", topics=["cables"])
    """
    if component:
        context["component"] = component
    return PMPLogger(structlog.get_logger(name, **context))


configure_logging()
