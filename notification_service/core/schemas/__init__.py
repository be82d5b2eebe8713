"""Shared response schemas."""

from notification_service.core.schemas.problem_details import (
    FieldError,
    ProblemDetails,
    ValidationProblemDetails,
)

__all__ = ["FieldError", "ProblemDetails", "ValidationProblemDetails"]
