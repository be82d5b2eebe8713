"""Context management for structured logging.

Uses contextvars so that identifiers such as ``recipient_id`` and
``notification_id`` set once at the top of a delivery attempt are stamped
on every record logged within it, including across await boundaries and
concurrently running batch items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(recipient_id="user-1", channel="email")
        logger.info("Delivering notification")  # includes recipient_id and channel
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Scope fields to a block, restoring the previous context on exit.

    Sweeps process many records in one task; scoping keeps one record's
    ``notification_id`` off the next record's log lines.

    Example:
        ```python
        with log_context(sweep="scheduled", notification_id=str(record.id)):
            await dispatch(record)
        ```
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copy the current logging context onto every LogRecord.

    Fields passed explicitly with ``extra=`` win over context fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
