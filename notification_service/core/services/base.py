"""Base service class for business logic."""

from __future__ import annotations

import logging

from notification_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for all service classes.

    Provides common logging for business logic services.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
            class ChannelRegistry(BaseService):
            async def test(self, session, channel_id):
                self.logger.info("Testing channel", extra={"channel_id": str(channel_id)})
                self._lazy.debug(lambda: f"Channel config: {channel.config}")
    """

    def __init__(self) -> None:
        """Initialize base service with loggers."""
        class_name = self.__class__.__name__
        # Standard logger for INFO/WARNING/ERROR
        self.logger = logging.getLogger(class_name)
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(class_name)
