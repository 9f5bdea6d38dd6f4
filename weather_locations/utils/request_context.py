"""Request-scoped metadata stored in context variables.

Middleware assigns every inbound call a request id; the auth dependency
records the verified user id.  Exception handlers and log statements read
both without threading them through every function signature.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

__all__ = [
    "REQUEST_ID_CONTEXT",
    "USER_ID_CONTEXT",
    "clear_request_id",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]

REQUEST_ID_CONTEXT: ContextVar[str] = ContextVar("request_id", default="")
USER_ID_CONTEXT: ContextVar[str] = ContextVar("user_id", default="")


def set_request_id(request_id: str) -> Token[str]:
    """Store ``request_id`` for the active task and return the reset token."""

    return REQUEST_ID_CONTEXT.set(request_id)


def get_request_id() -> str:
    """Return the current request id, or an empty string outside a request."""

    return REQUEST_ID_CONTEXT.get()


def clear_request_id(token: Token[str] | None = None) -> None:
    if token is not None:
        REQUEST_ID_CONTEXT.reset(token)
    else:
        REQUEST_ID_CONTEXT.set("")


def set_user_id(user_id: str) -> Token[str]:
    return USER_ID_CONTEXT.set(user_id)


def get_user_id() -> str:
    return USER_ID_CONTEXT.get()
