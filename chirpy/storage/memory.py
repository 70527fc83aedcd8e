from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from chirpy.logging import get_logger
from chirpy.storage.errors import (
    ConstraintViolation,
    RecordNotFound,
    RefreshTokenExpired,
    RefreshTokenRevoked,
)
from chirpy.storage.models import Chirp, RefreshToken, User, utcnow


class MemoryStore:
    """In-memory backing store for tests and local development."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.users: Dict[uuid.UUID, User] = {}
        self.credentials: Dict[uuid.UUID, str] = {}
        self.refresh_tokens: Dict[str, RefreshToken] = {}
        self.chirps: Dict[uuid.UUID, Chirp] = {}
        # Every check-then-act sequence below runs under this lock
        self._data_lock = threading.RLock()

    # users
    def create_user(self, email: str, hashed_password: str) -> User:
        with self._data_lock:
            if any(u.email == email for u in self.users.values()):
                raise ConstraintViolation("email already exists", {"field": "email"})
            user = User(id=uuid.uuid4(), email=email)
            self.users[user.id] = user
            self.credentials[user.id] = hashed_password
            return user

    def update_password_hash(self, user_id: uuid.UUID, hashed_password: str) -> None:
        with self._data_lock:
            user = self.users.get(user_id)
            if user is None:
                raise RecordNotFound("user")
            self.credentials[user_id] = hashed_password
            user.updated_at = utcnow()

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._data_lock:
            return next((u for u in self.users.values() if u.email == email), None)

    def get_password_hash(self, user_id: uuid.UUID) -> Optional[str]:
        with self._data_lock:
            return self.credentials.get(user_id)

    def delete_all_users(self) -> int:
        with self._data_lock:
            count = len(self.users)
            self.users.clear()
            self.credentials.clear()
            # Mirror ON DELETE CASCADE
            self.refresh_tokens.clear()
            self.chirps.clear()
            self.logger.info("memory_store_users_deleted", count=count)
            return count

    # refresh tokens
    def insert_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshToken:
        with self._data_lock:
            if token in self.refresh_tokens:
                raise ConstraintViolation("refresh token already exists", {"field": "token"})
            if user_id not in self.users:
                raise ConstraintViolation("refresh token user missing", {"user_id": str(user_id)})
            try:
                record = RefreshToken.new(token, user_id, expires_at)
            except ValueError as exc:
                raise ConstraintViolation(str(exc), {"field": "expires_at"}) from exc
            self.refresh_tokens[token] = record
            return record

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        with self._data_lock:
            return self.refresh_tokens.get(token)

    def find_active_refresh_token(self, token: str, now: datetime) -> uuid.UUID:
        with self._data_lock:
            record = self.refresh_tokens.get(token)
            if record is None:
                raise RecordNotFound("refresh_token")
            if record.is_revoked:
                raise RefreshTokenRevoked()
            if record.is_expired(now):
                raise RefreshTokenExpired()
            return record.user_id

    def mark_refresh_token_revoked(self, token: str) -> None:
        with self._data_lock:
            record = self.refresh_tokens.get(token)
            if record is None:
                raise RecordNotFound("refresh_token")
            if record.revoked_at is None:
                now = utcnow()
                record.revoked_at = now
                record.updated_at = now

    # chirps
    def create_chirp(self, body: str, user_id: uuid.UUID) -> Chirp:
        with self._data_lock:
            if user_id not in self.users:
                raise ConstraintViolation("chirp author missing", {"user_id": str(user_id)})
            chirp = Chirp.new(body, user_id)
            self.chirps[chirp.id] = chirp
            return chirp

    def get_chirp(self, chirp_id: uuid.UUID) -> Optional[Chirp]:
        with self._data_lock:
            return self.chirps.get(chirp_id)

    def list_chirps(self) -> List[Chirp]:
        with self._data_lock:
            return sorted(self.chirps.values(), key=lambda c: c.created_at)

    def close(self) -> None:
        pass
