"""Bearer token verification for the favorites API.

Tokens are HS256 JWTs issued by the account service.  Verification turns the
``Authorization`` header into a :class:`Principal` or raises
:class:`AuthError` with a reason that lets the API tell an expired session
apart from a malformed or forged token.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import Header, Request
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from weather_locations.errors import AuthError
from weather_locations.utils.request_context import set_user_id

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller decoded from a bearer token."""

    user_id: str
    username: str | None = None
    claims: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token portion of an ``Authorization: Bearer`` header."""

    if not authorization or not authorization.strip():
        raise AuthError("missing", "No token provided")

    match = _BEARER_PATTERN.match(authorization.strip())
    if match is None:
        raise AuthError("malformed", "Invalid token format")
    return match.group(1).strip()


class TokenVerifier:
    """Decode and validate JWTs signed with the shared secret."""

    def __init__(self, secret: str | None, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithms = [algorithm]

    def verify(self, token: str) -> Principal:
        if not self._secret:
            # A deployment problem, not a client one: surfaces as a 500.
            raise RuntimeError("JWT_SECRET is not configured")

        try:
            claims = jwt.decode(token, self._secret, algorithms=self._algorithms)
        except ExpiredSignatureError as exc:
            raise AuthError("expired", "Token Expired") from exc
        except InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", type(exc).__name__)
            raise AuthError("invalid", "Invalid token") from exc

        user_id = claims.get("userId")
        if user_id is None:
            user_id = claims.get("sub")
        if user_id is None or str(user_id).strip() == "":
            raise AuthError("invalid", "Token does not identify a user")

        return Principal(
            user_id=str(user_id),
            username=claims.get("username"),
            claims=claims,
        )

    def authenticate(self, authorization: str | None) -> Principal:
        return self.verify(extract_bearer_token(authorization))


async def get_current_principal(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Principal:
    """FastAPI dependency resolving the caller from the Authorization header."""

    verifier: TokenVerifier = request.app.state.token_verifier
    principal = verifier.authenticate(authorization)
    set_user_id(principal.user_id)
    return principal


__all__ = [
    "Principal",
    "TokenVerifier",
    "extract_bearer_token",
    "get_current_principal",
]
