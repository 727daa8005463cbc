"""Domain models and errors for the claim window."""

from .errors import (
    ClaimWindowError,
    ConfigurationError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
    WindowClosedError,
)
from .models import ClaimRecord, SubmitResult, WindowStatus

__all__ = [
    "ClaimRecord",
    "ClaimWindowError",
    "ConfigurationError",
    "NotFoundError",
    "StorageError",
    "SubmitResult",
    "UnauthorizedError",
    "ValidationError",
    "WindowClosedError",
    "WindowStatus",
]
