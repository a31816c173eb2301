"""
structlog configuration.

Production emits one JSON object per line; development gets the colored
console renderer. Stdlib loggers (repositories, asyncpg, uvicorn) share the
same stdout stream so the aggregator's output stays in one place.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from spot_tracker.config.settings import get_settings
from spot_tracker.observability.tracing import add_trace_context

_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def _renderers(production: bool) -> list[Processor]:
    if production:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger from settings.

    Call once at process start (the CLI does this for every command).
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.tracing_enabled:
        processors.append(add_trace_context)
    processors.extend(_renderers(settings.is_production))

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
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """
    Attach key-value pairs to every later log line of the current task.

    Each aggregator loop runs in its own task, so binding ``aggregator=rbn``
    there tags only that loop's output.
    """
    structlog.contextvars.bind_contextvars(**kwargs)
