"""Error response schemas for consistent error handling."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Types of errors that can occur."""

    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"
    TIMEOUT_ERROR = "timeout_error"
    AUTHENTICATION_ERROR = "authentication_error"


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_type": "authentication_error",
                "message": "Token Expired",
                "detail": "expired",
                "status_code": 401,
                "timestamp": "2025-11-03T10:30:00Z",
                "request_id": "3f1c2a9e-4b8d-4e0f-9a51-0c7d2f6b1e44",
                "path": "/locations",
                "retry_after": None,
            }
        }
    )

    error_type: ErrorType = Field(..., description="Category of error")
    message: str = Field(..., description="Human-readable error message")
    detail: str | None = Field(None, description="Additional error details or context")
    status_code: int = Field(..., description="HTTP status code")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When error occurred",
    )
    request_id: str | None = Field(None, description="Unique request identifier for tracking")
    path: str | None = Field(None, description="Request path that caused the error")
    retry_after: int | None = Field(
        None, description="Seconds to wait before retrying a retryable failure"
    )


class ValidationErrorDetail(BaseModel):
    """Details for validation errors."""

    field: str = Field(..., description="Field that failed validation")
    message: str = Field(..., description="Validation error message")
    value: Any = Field(None, description="Value that failed validation")


class ValidationErrorResponse(ErrorResponse):
    """Extended error response for validation errors."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_type": "validation_error",
                "message": "Request validation failed",
                "detail": "1 validation error(s)",
                "status_code": 400,
                "timestamp": "2025-11-03T10:30:00Z",
                "request_id": "3f1c2a9e-4b8d-4e0f-9a51-0c7d2f6b1e44",
                "path": "/locations",
                "errors": [
                    {"field": "body.latitude", "message": "Input should be less than or equal to 90", "value": 123.4},
                ],
            }
        }
    )

    error_type: ErrorType = Field(default=ErrorType.VALIDATION_ERROR)
    errors: list[ValidationErrorDetail] = Field(
        default_factory=list, description="List of validation errors"
    )
