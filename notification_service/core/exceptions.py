"""Custom exception classes for the notification service."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
            raise AppException(
            status_code=404,
            detail="Template 'welcome' not found",
            type="template-not-found",
            title="Not Found",
            extra={"template": "welcome"}
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code.

        Args:
            status_code: HTTP status code.

        Returns:
            Human-readable title for the status code.
        """
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            429: "Too Many Requests",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found.

    Example:
            raise NotFoundException(
            detail="Channel with ID abc123 not found",
            type="channel-not-found",
            extra={"channel_id": "abc123"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize not found exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Exception raised for validation errors.

    All problems found are reported together in ``extra["errors"]`` rather
    than stopping at the first one.

    Example:
            raise ValidationException(
            detail="Missing required variables: name, link",
            type="missing-template-variables",
            extra={"missing_variables": ["name", "link"]}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """Exception raised when a resource conflicts with existing state.

    Example:
            raise ConflictException(
            detail="An active template named 'welcome' already exists",
            type="template-name-conflict",
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


class UnsupportedChannelException(AppException):
    """Exception raised when a template does not support the requested channel."""

    def __init__(
        self,
        detail: str,
        type: str = "unsupported-channel",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize unsupported channel exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Unsupported Channel",
            instance=instance,
            extra=extra,
        )


class ChannelUnavailableException(AppException):
    """Exception raised when no active channel resolves for a channel type.

    This is fatal for the delivery attempt; it is not a preference skip.
    """

    def __init__(
        self,
        detail: str,
        type: str = "channel-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize channel unavailable exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


class DeliveryFailureException(AppException):
    """Exception raised by a channel sender whose provider rejected a delivery.

    Senders may return a failed ``DeliveryResult`` or raise this; either way the
    orchestrator records the notification as failed. Delivery failures are
    retryable, unlike validation or configuration errors.

    Example:
            raise DeliveryFailureException(
            detail="Webhook endpoint returned 500",
            extra={"channel": "webhook", "status_code": 500}
        )
    """

    retryable = True

    def __init__(
        self,
        detail: str,
        type: str = "delivery-failed",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize delivery failure exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=502,
            detail=detail,
            type=type,
            title="Bad Gateway",
            instance=instance,
            extra={"retryable": True, **(extra or {})},
        )


class RateLimitException(AppException):
    """Exception raised when a channel rate limit is exceeded.

    Example:
            raise RateLimitException(
            detail="Channel 'primary-email' rate limit exceeded",
            extra={"retry_after": 12, "limit": 100, "window_seconds": 60}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "rate-limit-exceeded",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
        *,
        status_code: int = 429,
    ) -> None:
        """Initialize rate limit exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error (should include retry_after).
            status_code: Override for HTTP status (defaults to 429).
        """
        super().__init__(
            status_code=status_code,
            detail=detail,
            type=type,
            title="Too Many Requests",
            instance=instance,
            extra=extra,
        )


# Aliases used throughout the notification engine
NotFoundError = NotFoundException
ValidationError = ValidationException
ConflictError = ConflictException
UnsupportedChannelError = UnsupportedChannelException
ChannelUnavailableError = ChannelUnavailableException
DeliveryFailure = DeliveryFailureException
RateLimitExceeded = RateLimitException


__all__ = [
    "AppException",
    "ChannelUnavailableError",
    "ChannelUnavailableException",
    "ConflictError",
    "ConflictException",
    "DeliveryFailure",
    "DeliveryFailureException",
    "NotFoundError",
    "NotFoundException",
    "RateLimitException",
    "RateLimitExceeded",
    "UnsupportedChannelError",
    "UnsupportedChannelException",
    "ValidationError",
    "ValidationException",
]
