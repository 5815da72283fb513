"""
Web API response models
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class APIResponse(BaseModel):
    """Standard API response envelope."""

    success: bool = Field(..., description="Whether the request succeeded")
    data: Any | None = Field(None, description="Response payload")
    pagination: dict[str, Any] | None = Field(None, description="Cursor pagination details")
    meta: dict[str, Any] | None = Field(None, description="Provenance details")
    message: str | None = Field(None, description="Human readable message")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Response timestamp")
    request_id: str | None = Field(None, description="Request id for tracing")


class ErrorResponse(BaseModel):
    """Error response envelope."""

    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Error details")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Error timestamp")
    request_id: str | None = Field(None, description="Request id for tracing")
