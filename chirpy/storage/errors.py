from __future__ import annotations

from typing import Any, Dict, Optional


class ConstraintViolation(Exception):
    """Raised when a storage-layer uniqueness or FK constraint is violated."""

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class StorageError(Exception):
    """Raised when the backing store cannot complete an operation."""


class RecordNotFound(LookupError):
    """Raised when a keyed record does not exist."""


class RefreshTokenExpired(Exception):
    """Raised by refresh-token lookups when ``now > expires_at``."""


class RefreshTokenRevoked(Exception):
    """Raised by refresh-token lookups when ``revoked_at`` is set."""


__all__ = [
    "ConstraintViolation",
    "StorageError",
    "RecordNotFound",
    "RefreshTokenExpired",
    "RefreshTokenRevoked",
]
