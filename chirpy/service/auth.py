from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from chirpy.config import Settings
from chirpy.service.bearer import extract_bearer_token
from chirpy.service.errors import (
    InternalError,
    InvalidCredentialsError,
    ValidationError,
)
from chirpy.service.passwords import HashingPool
from chirpy.service.refresh import RefreshTokenManager, RefreshTokenStore
from chirpy.service.tokens import SessionTokenSigner
from chirpy.storage.models import User


class AuthStore(RefreshTokenStore, Protocol):
    def create_user(self, email: str, hashed_password: str) -> User: ...

    def update_password_hash(self, user_id: uuid.UUID, hashed_password: str) -> None: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def get_password_hash(self, user_id: uuid.UUID) -> Optional[str]: ...


@dataclass
class LoginResult:
    user: User
    access_token: str
    refresh_token: str


class AuthService:
    """Login, token refresh and revocation on top of the credential primitives.

    Operations raise typed ``ServiceError`` subclasses and never log; the API
    layer decides what to record and collapses auth failures for clients.
    """

    def __init__(
        self,
        store: AuthStore,
        settings: Settings,
        *,
        hashing: HashingPool,
        signer: Optional[SessionTokenSigner] = None,
        refresh_tokens: Optional[RefreshTokenManager] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.hashing = hashing
        self.signer = signer or SessionTokenSigner()
        self.refresh_tokens = refresh_tokens or RefreshTokenManager(
            store, settings.refresh_token_ttl
        )

    @property
    def _secret(self) -> str:
        if not self.settings.jwt_secret:
            raise InternalError("session token secret is not configured")
        return self.settings.jwt_secret

    async def signup(self, email: str, password: str) -> User:
        if not password:
            raise ValidationError("password must not be empty")
        hashed = await self.hashing.hash(password)
        return self.store.create_user(email, hashed)

    async def login(self, email: str, password: str) -> LoginResult:
        user = self.store.get_user_by_email(email)
        if user is None:
            raise InvalidCredentialsError("unknown email")
        stored_hash = self.store.get_password_hash(user.id)
        if stored_hash is None:
            raise InvalidCredentialsError("no password on record")
        if not await self.hashing.verify(password, stored_hash):
            raise InvalidCredentialsError("password mismatch")
        if self.hashing.hasher.needs_rehash(stored_hash):
            # Hashes made with older cost parameters are upgraded on login
            self.store.update_password_hash(user.id, await self.hashing.hash(password))

        access_token = self.issue_access_token(user.id)
        # generate + persist form one unit; callers retry both on InternalError
        refresh_token = self.refresh_tokens.generate()
        self.refresh_tokens.persist(
            refresh_token, user.id, self.refresh_tokens.expires_at_from_now()
        )
        return LoginResult(
            user=user, access_token=access_token, refresh_token=refresh_token
        )

    def issue_access_token(self, user_id: uuid.UUID) -> str:
        return self.signer.issue(user_id, self._secret, self.settings.access_token_ttl)

    def refresh(self, authorization: Optional[str]) -> str:
        token = extract_bearer_token(authorization)
        user_id = self.refresh_tokens.lookup(token)
        return self.issue_access_token(user_id)

    def revoke(self, authorization: Optional[str]) -> None:
        token = extract_bearer_token(authorization)
        self.refresh_tokens.revoke(token)

    def authenticate(self, authorization: Optional[str]) -> uuid.UUID:
        """Resolve the user behind a session token, for protected routes."""
        token = extract_bearer_token(authorization)
        return self.signer.validate(token, self._secret)
