from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each exception class carries an HTTP ``status_code`` and a stable
    ``error_code`` used in the response envelope:
    - validation_error (400)
    - unauthorized (401)
    - forbidden (403)
    - not_found (404)
    - conflict (409)
    - server_error (500)
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class ValidationError(ServiceError):
    """Caller input is malformed (400)."""
    status_code = 400
    error_code = "validation_error"


class HeaderMissingError(ValidationError):
    """No authorization header was supplied."""


class MalformedHeaderError(ValidationError):
    """Authorization header is not of the form ``Bearer <token>``."""


class MalformedTokenError(ValidationError):
    """Session token is not a three-segment JWT with decodable parts."""


class ChirpTooLongError(ValidationError):
    """Chirp body exceeds the maximum length."""


class AuthenticationError(ServiceError):
    """Credentials or tokens are well-formed but not valid (401).

    ``reason`` names the specific check that failed. It is meant for logs
    only; responses collapse every subclass to the same generic message.
    """

    status_code = 401
    error_code = "unauthorized"
    reason: str = "unauthorized"


class InvalidCredentialsError(AuthenticationError):
    reason = "invalid_credentials"


class SignatureInvalidError(AuthenticationError):
    reason = "signature_invalid"


class TokenExpiredError(AuthenticationError):
    reason = "expired"


class TokenRevokedError(AuthenticationError):
    reason = "revoked"


class TokenNotFoundError(AuthenticationError):
    reason = "not_found"


class SubjectInvalidError(AuthenticationError):
    reason = "subject_invalid"


class ForbiddenError(ServiceError):
    """Access denied (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class InternalError(ServiceError):
    """Hashing primitive, store, or unexpected-state failure (500)."""
    status_code = 500
    error_code = "server_error"


__all__ = [
    "ServiceError",
    "ValidationError",
    "HeaderMissingError",
    "MalformedHeaderError",
    "MalformedTokenError",
    "ChirpTooLongError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "SignatureInvalidError",
    "TokenExpiredError",
    "TokenRevokedError",
    "TokenNotFoundError",
    "SubjectInvalidError",
    "ForbiddenError",
    "NotFoundError",
    "InternalError",
]
