"""Helper functions for constructing structured API error responses.

Every payload carries the request id and a timezone-aware timestamp so that
errors share one shape regardless of where they originated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from fastapi.responses import JSONResponse

from weather_locations.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from weather_locations.utils.request_context import get_request_id

__all__ = [
    "build_error_response",
    "build_validation_error_response",
    "error_json_response",
]


def _current_timestamp() -> datetime:
    """Return a timezone-aware timestamp for error payloads.

    Kept as a separate function so tests can monkeypatch the clock.
    """

    return datetime.now(UTC)


def build_validation_error_response(
    *,
    errors: Sequence[ValidationErrorDetail],
    message: str,
    detail: str,
    status_code: int,
    path: str,
    error_type: ErrorType = ErrorType.VALIDATION_ERROR,
    request_id: str | None = None,
) -> ValidationErrorResponse:
    """Construct a ``ValidationErrorResponse`` enriched with metadata."""

    resolved_request_id = request_id or get_request_id()
    return ValidationErrorResponse(
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=resolved_request_id,
        path=path,
        errors=list(errors),
    )


def build_error_response(
    *,
    error_type: ErrorType,
    message: str,
    detail: str | None,
    status_code: int,
    path: str,
    retry_after: int | None = None,
    request_id: str | None = None,
) -> ErrorResponse:
    """Construct a generic ``ErrorResponse`` enriched with metadata.

    ``retry_after`` is only set for failures the client may safely retry.
    """

    resolved_request_id = request_id or get_request_id()
    return ErrorResponse(
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=resolved_request_id,
        path=path,
        retry_after=retry_after,
    )


def error_json_response(
    payload: ErrorResponse,
    *,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Serialise ``payload`` into a ``JSONResponse`` with its status code."""

    response_headers = dict(headers or {})
    if payload.retry_after is not None:
        response_headers.setdefault("Retry-After", str(payload.retry_after))
    return JSONResponse(
        status_code=payload.status_code,
        content=payload.model_dump(mode="json"),
        headers=response_headers,
    )
