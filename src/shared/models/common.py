"""Common types used across all models."""

from datetime import datetime

from pydantic import Field

from .base import DashboardBaseModel


class ErrorResponse(DashboardBaseModel):
    """Error envelope returned for framework errors."""

    error: str = Field(description="Machine-readable error code, e.g. not_found")
    message: str = Field(description="Human-readable, sanitised error message")
    code: int = Field(description="HTTP status code")


class GeneratedAt(DashboardBaseModel):
    """When a response was assembled."""

    timestamp: datetime
    timezone: str = "UTC"
