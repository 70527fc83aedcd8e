from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: uuid.UUID
    email: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class RefreshToken:
    token: str
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None

    @classmethod
    def new(
        cls, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> "RefreshToken":
        now = utcnow()
        if expires_at <= now:
            raise ValueError("refresh token must expire after it is created")
        return cls(
            token=token,
            user_id=user_id,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class Chirp:
    id: uuid.UUID
    body: str
    user_id: uuid.UUID
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, body: str, user_id: uuid.UUID) -> "Chirp":
        now = utcnow()
        return cls(
            id=uuid.uuid4(), body=body, user_id=user_id, created_at=now, updated_at=now
        )
