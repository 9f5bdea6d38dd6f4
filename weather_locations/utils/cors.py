"""CORS header construction shared by the middleware and error handlers."""

from __future__ import annotations

from starlette.responses import Response

ALLOWED_METHODS = ("OPTIONS", "GET", "POST", "PUT", "DELETE")
ALLOWED_HEADERS = (
    "Content-Type",
    "X-Amz-Date",
    "Authorization",
    "X-Api-Key",
    "X-Amz-Security-Token",
    "X-Requested-With",
)


def _normalize_origin(origin: str) -> str:
    """Return the origin stripped of whitespace and trailing slashes."""

    return origin.strip().rstrip("/") or "*"


def cors_headers(allowed_origin: str) -> dict[str, str]:
    """Return the headers attached to every response, errors included."""

    return {
        "Access-Control-Allow-Origin": _normalize_origin(allowed_origin),
        "Access-Control-Allow-Methods": ",".join(ALLOWED_METHODS),
        "Access-Control-Allow-Headers": ",".join(ALLOWED_HEADERS),
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }


def apply_cors_headers(response: Response, allowed_origin: str) -> Response:
    for name, value in cors_headers(allowed_origin).items():
        response.headers[name] = value
    return response


__all__ = [
    "ALLOWED_HEADERS",
    "ALLOWED_METHODS",
    "apply_cors_headers",
    "cors_headers",
]
