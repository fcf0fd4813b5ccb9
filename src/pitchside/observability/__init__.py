"""Observability: structured logging."""

from pitchside.observability.logging import configure_structlog, get_logger_for_service

__all__ = ["configure_structlog", "get_logger_for_service"]
