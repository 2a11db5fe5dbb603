"""Structured logging configuration.

Features:
- JSON-formatted log output for production and staging
- Human-readable colored output for development
- Service context on every event
- Brief context: ``brief_id`` and the current pipeline ``stage`` are bound
  through ``structlog.contextvars`` for the length of one brief execution

Stage logic logs key-value events through ``get_logger``. The user-visible
audit trail is written separately by ``forge.store.journal.BuildJournal``.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

from forge.core.config import get_settings


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add service context to all log entries.

    Args:
        logger: The wrapped logger object.
        method_name: The name of the method called on the logger.
        event_dict: The event dictionary to process.

    Returns:
        Updated event dictionary with service context.
    """
    settings = get_settings()
    event_dict["service"] = settings.service_name
    event_dict["environment"] = settings.environment
    return event_dict


@contextmanager
def brief_log_context(brief_id: str) -> Iterator[None]:
    """Bind ``brief_id`` to every event logged inside the block.

    ``stage`` starts as None and follows the pipeline through
    ``bind_stage``. Both keys are restored on exit.

    Example:
        ```python
        with brief_log_context("brief-1"):
            bind_stage("planning")
            logger.info("plan_ready")  # brief_id=brief-1 stage=planning
        ```
    """
    with structlog.contextvars.bound_contextvars(brief_id=brief_id, stage=None):
        yield


def bind_stage(stage: str | None) -> None:
    """Record the current pipeline stage in the bound brief context."""
    structlog.contextvars.bind_contextvars(stage=stage)


def configure_logging() -> None:
    """Configure structured logging for the application.

    In development: Human-readable colored output
    In production: JSON-formatted structured logs
    """
    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())

    use_json = settings.environment in ("production", "staging")

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name (module name recommended).

    Returns:
        Configured structlog BoundLogger instance.

    Example:
        ```python
        from forge.core.logging import get_logger

        logger = get_logger(__name__)
        logger.info("stage_entered", brief_id="abc123", stage="planning")
        ```
    """
    return structlog.get_logger(name)


Logger = structlog.BoundLogger
