# src/chorus_courier/core/errors.py
"""Exception hierarchy for session bootstrap and message delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from chorus_courier.models.response import BackendResponse


class CourierError(RuntimeError):
    """Base exception for all Chorus Courier failures."""


class BackendError(CourierError):
    """Raised for unexpected backend responses and transport failures.

    The raw response is attached when the backend answered at all.
    """

    def __init__(self, message: str, response: BackendResponse | None = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status(self) -> int | None:
        return self.response.status if self.response is not None else None


class RateLimitError(BackendError):
    """Raised when login stays rate limited after the cookie-reset retries."""


class AuthenticationError(BackendError):
    """Raised when the backend rejects a login or returns no access token."""


class RegistrationError(BackendError):
    """Raised when client registration or a prekey upload is rejected."""


class ConnectionUpdateError(BackendError):
    """Describes a failed auto-connect. Returned to callers, never raised."""


class KeyMaterialError(CourierError):
    """Raised when the key store produces an unusable prekey batch."""


class SessionNotReadyError(CourierError):
    """Raised when an operation needs an access token or client id that is not set yet."""
