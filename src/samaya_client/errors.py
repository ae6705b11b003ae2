"""
Error taxonomy for the Samaya client core.

Every error carries a human-readable ``message`` that a front end can show
directly, a machine ``code`` and optional ``details``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SamayaError(Exception):
    """Base exception for all client-core failures."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def with_message(self, message: str) -> "SamayaError":
        """Return a copy of this error carrying a different message."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.message = message
        clone.args = (message,)
        return clone


class ValidationError(SamayaError):
    """Raised for malformed input before any network call is made."""


class NetworkError(SamayaError):
    """Raised when the transport fails (DNS, refused or reset connection)."""


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds the configured timeout."""


class RemoteError(SamayaError):
    """Raised when the server responds but reports a failure."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class StaleSessionError(RemoteError):
    """Raised when the server rejects the stored session token."""


class BookingStateError(SamayaError):
    """Raised for an illegal booking or payment status transition."""


NETWORK_MESSAGE = "Network error. Please check your internet connection and try again."
TIMEOUT_MESSAGE = "The server took too long to respond. Please try again."


def surface(exc: SamayaError, action: str) -> SamayaError:
    """Rewrite a lower-level error into a message fit for display."""
    if isinstance(exc, ValidationError):
        return exc
    if isinstance(exc, RequestTimeoutError):
        return exc.with_message(TIMEOUT_MESSAGE)
    if isinstance(exc, NetworkError):
        return exc.with_message(NETWORK_MESSAGE)
    return exc.with_message(f"{action}: {exc.message}")
