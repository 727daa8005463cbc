"""Error taxonomy surfaced by the claim window core.

Each error carries the HTTP status the API layer renders it with. None of them
are retried inside the core.
"""

from __future__ import annotations


class ClaimWindowError(Exception):
    """Base class for client-renderable claim window failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WindowClosedError(ClaimWindowError):
    """Raised when a claim arrives while no window is open or after expiry."""

    status_code = 400


class ValidationError(ClaimWindowError):
    """Raised for missing payout fields or a failed captcha."""

    status_code = 400


class UnauthorizedError(ClaimWindowError):
    """Raised when the admin gate rejects a request."""

    status_code = 401


class NotFoundError(ClaimWindowError):
    """Raised when an operation references an unknown claim."""

    status_code = 404


class StorageError(ClaimWindowError):
    """Raised when the claim ledger cannot complete an I/O operation."""

    status_code = 500


class ConfigurationError(ClaimWindowError):
    """Raised when a request needs a setting the service was started without."""

    status_code = 500


__all__ = [
    "ClaimWindowError",
    "ConfigurationError",
    "NotFoundError",
    "StorageError",
    "UnauthorizedError",
    "ValidationError",
    "WindowClosedError",
]
