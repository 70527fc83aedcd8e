from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from chirpy.service.errors import (
    InternalError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRevokedError,
)
from chirpy.storage.errors import (
    ConstraintViolation,
    RecordNotFound,
    RefreshTokenExpired,
    RefreshTokenRevoked,
    StorageError,
)
from chirpy.storage.models import RefreshToken

# 32 bytes = 256 bits of entropy, hex encoded to 64 characters
REFRESH_TOKEN_BYTES = 32


class RefreshTokenStore(Protocol):
    def insert_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshToken: ...

    def find_active_refresh_token(self, token: str, now: datetime) -> uuid.UUID:
        """Return the owner of ``token`` in one consistent read.

        Raises ``RecordNotFound``, ``RefreshTokenRevoked`` or
        ``RefreshTokenExpired``; revocation wins over expiry.
        """
        ...

    def mark_refresh_token_revoked(self, token: str) -> None:
        """Set ``revoked_at`` unless already set; ``RecordNotFound`` if unknown."""
        ...


class RefreshTokenManager:
    """Generates opaque refresh tokens and drives their persisted state.

    Token state lives only in the store. ``Active -> Revoked`` is the one
    stored transition and it is terminal; expiry is computed at lookup.
    """

    def __init__(
        self,
        store: RefreshTokenStore,
        ttl: timedelta,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("refresh token ttl must be positive")
        self.store = store
        self.ttl = ttl
        self._clock = clock

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(timezone.utc)

    def generate(self) -> str:
        return secrets.token_hex(REFRESH_TOKEN_BYTES)

    def expires_at_from_now(self) -> datetime:
        return self._now() + self.ttl

    def persist(self, token: str, user_id: uuid.UUID, expires_at: datetime) -> RefreshToken:
        # Duplicates and store failures both mean: generate a new token and retry
        try:
            return self.store.insert_refresh_token(token, user_id, expires_at)
        except ConstraintViolation as exc:
            raise InternalError("refresh token could not be stored") from exc
        except StorageError as exc:
            raise InternalError("refresh token store unavailable") from exc

    def lookup(self, token: str) -> uuid.UUID:
        try:
            return self.store.find_active_refresh_token(token, self._now())
        except RecordNotFound:
            raise TokenNotFoundError("refresh token not found") from None
        except RefreshTokenRevoked:
            raise TokenRevokedError("refresh token revoked") from None
        except RefreshTokenExpired:
            raise TokenExpiredError("refresh token expired") from None
        except StorageError as exc:
            raise InternalError("refresh token store unavailable") from exc

    def revoke(self, token: str) -> None:
        try:
            self.store.mark_refresh_token_revoked(token)
        except RecordNotFound:
            raise TokenNotFoundError("refresh token not found") from None
        except StorageError as exc:
            raise InternalError("refresh token store unavailable") from exc
