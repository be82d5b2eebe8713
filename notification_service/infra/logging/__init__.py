"""Logging infrastructure.

Provides structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (recipient_id, notification_id, etc.)
- Lazy evaluation for expensive DEBUG messages
- OpenTelemetry trace correlation

Basic usage:
    from notification_service.infra.logging import get_lazy_logger, set_log_context
    import logging

    logger = logging.getLogger(__name__)
    set_log_context(recipient_id="user-1")
    logger.info("Delivering notification")  # includes recipient_id

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Rendered: {content}")  # only built if DEBUG enabled
"""

from notification_service.infra.logging.config import configure_logging, setup_logging
from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    get_log_context,
    log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
]
