"""Structured logging configuration with structlog.

Production output is one JSON object per line; development output is
the coloured console renderer. The level comes from LOG_LEVEL.

Usage:
    from pitchside.observability import configure_structlog, get_logger_for_service

    configure_structlog(environment="development")
    log = get_logger_for_service("HandoverEngine")
    log.info("handover_executed", tasks_affected=3)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def _get_log_level() -> int:
    level_name = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.INFO)


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so redirection is honoured;
    # stdout stays free for command output.
    return structlog.PrintLogger(file=sys.stderr)


def configure_structlog(environment: str = "production") -> None:
    """Configure structlog once at process start.

    Args:
        environment: 'production' for JSON output, anything else for
            console output.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger_for_service(
    service_name: str, component: str = "task_engine"
) -> structlog.BoundLogger:
    """Logger with service and component already bound."""
    return structlog.get_logger().bind(
        service=service_name,
        component=component,
    )
