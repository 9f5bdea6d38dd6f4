"""Exception hierarchy shared by the store, the ordering engine and the API."""

from __future__ import annotations


class FavoritesError(Exception):
    """Base class for failures raised by the favorites domain."""


class AuthError(FavoritesError):
    """Raised when a request cannot be tied to an authenticated principal.

    ``reason`` is one of ``missing``, ``malformed``, ``invalid`` or
    ``expired`` so the API can tell an expired session apart from a forged or
    garbled token.
    """

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or f"Authentication failed: {reason}")

    @property
    def expired(self) -> bool:
        return self.reason == "expired"


class PayloadValidationError(FavoritesError):
    """Raised when a request body or path parameter has the wrong shape."""


class FavoriteExistsError(FavoritesError):
    """Raised when a user tries to favorite a location twice."""

    def __init__(self, user_id: str, location_id: int) -> None:
        self.user_id = user_id
        self.location_id = location_id
        super().__init__(f"Location {location_id} is already a favorite")


class StorageError(FavoritesError):
    """Raised when the relational store fails; the transaction was rolled back."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        self.retryable = retryable
        super().__init__(message)


class OrderConflictError(StorageError):
    """Raised when concurrent adds kept claiming the same display order."""

    def __init__(self, user_id: str, attempts: int) -> None:
        self.user_id = user_id
        self.attempts = attempts
        super().__init__(
            f"Could not assign a display order after {attempts} attempt(s)",
            retryable=True,
        )


class DuplicateLocationError(FavoritesError):
    """Signals that a concurrent insert created the same (name, country) row."""

    def __init__(self, name: str, country_code: str) -> None:
        self.name = name
        self.country_code = country_code
        super().__init__(f"Location {name!r}/{country_code!r} already exists")


class DisplayOrderConflictError(FavoritesError):
    """Signals that a favorite insert collided with an existing row."""


class MissingLocationError(FavoritesError):
    """Signals that the catalog row a favorite points at no longer exists."""

    def __init__(self, location_id: int) -> None:
        self.location_id = location_id
        super().__init__(f"Location {location_id} no longer exists")


__all__ = [
    "AuthError",
    "DisplayOrderConflictError",
    "DuplicateLocationError",
    "FavoriteExistsError",
    "FavoritesError",
    "MissingLocationError",
    "OrderConflictError",
    "PayloadValidationError",
    "StorageError",
]
