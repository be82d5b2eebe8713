"""RFC 7807 Problem Details schema for error responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProblemDetails(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs.

    See: https://datatracker.ietf.org/doc/html/rfc7807

    Example:
            return JSONResponse(
            status_code=404,
            content=ProblemDetails(
                type="template-not-found",
                title="Not Found",
                status=404,
                detail="Template 'welcome' not found",
                instance="/templates/welcome/render"
            ).model_dump()
        )
    """

    type: str = Field(
        default="about:blank",
        min_length=1,
        max_length=200,
        description="URI reference identifying the problem type",
    )
    title: str = Field(
        min_length=1, max_length=200, description="Short, human-readable summary of the problem"
    )
    status: int = Field(ge=100, le=599, description="HTTP status code")
    detail: str | None = Field(
        default=None,
        max_length=2000,
        description="Human-readable explanation specific to this occurrence",
    )
    instance: str | None = Field(
        default=None,
        max_length=500,
        description="URI reference identifying the specific occurrence",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "missing-template-variables",
                "title": "Unprocessable Entity",
                "status": 422,
                "detail": "Missing required variables for template 'welcome': name",
                "instance": "/templates/welcome/render",
            }
        },
        str_strip_whitespace=True,
    )


class FieldError(BaseModel):
    """One field-level validation problem."""

    field: str = Field(description="Dotted path of the offending field")
    message: str = Field(description="What is wrong with it")
    type: str = Field(description="Validation error type")
    value: Any | None = Field(default=None, description="Rejected input")


class ValidationProblemDetails(ProblemDetails):
    """Problem Details carrying field-level validation errors."""

    errors: list[FieldError] = Field(default_factory=list)


__all__ = ["FieldError", "ProblemDetails", "ValidationProblemDetails"]
