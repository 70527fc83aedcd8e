"""Unit tests for opaque refresh tokens backed by the memory store."""

import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from chirpy.service.errors import (
    InternalError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRevokedError,
)
from chirpy.service.refresh import RefreshTokenManager
from chirpy.storage.errors import StorageError
from chirpy.storage.memory import MemoryStore


class MovableClock:
    def __init__(self):
        self.offset = timedelta(0)

    def __call__(self) -> datetime:
        return datetime.now(timezone.utc) + self.offset


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def user(store):
    return store.create_user("refresh@example.com", "$argon2id$placeholder")


@pytest.fixture
def clock():
    return MovableClock()


@pytest.fixture
def manager(store, clock):
    return RefreshTokenManager(store, timedelta(days=60), clock=clock)


class TestGenerate:
    def test_token_is_64_hex_chars(self, manager):
        token = manager.generate()

        assert re.fullmatch(r"[0-9a-f]{64}", token)

    def test_tokens_are_distinct(self, manager):
        tokens = {manager.generate() for _ in range(1000)}

        assert len(tokens) == 1000

    def test_non_positive_ttl_rejected(self, store):
        with pytest.raises(ValueError):
            RefreshTokenManager(store, timedelta(0))


class TestLifecycle:
    def test_persist_then_lookup(self, manager, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())

        assert manager.lookup(token) == user.id

    def test_expiry_is_sixty_days_out(self, manager, store, user):
        token = manager.generate()
        record = manager.persist(token, user.id, manager.expires_at_from_now())

        remaining = record.expires_at - record.created_at
        assert timedelta(days=59, hours=23) < remaining <= timedelta(days=60)
        assert store.get_refresh_token(token).revoked_at is None

    def test_lookup_unknown_token(self, manager):
        with pytest.raises(TokenNotFoundError) as excinfo:
            manager.lookup("0" * 64)
        assert excinfo.value.reason == "not_found"

    def test_revoke_then_lookup(self, manager, store, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())

        manager.revoke(token)

        assert store.get_refresh_token(token).revoked_at is not None
        with pytest.raises(TokenRevokedError):
            manager.lookup(token)

    def test_revoke_is_idempotent(self, manager, store, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())

        manager.revoke(token)
        first_revoked_at = store.get_refresh_token(token).revoked_at
        manager.revoke(token)

        assert store.get_refresh_token(token).revoked_at == first_revoked_at

    def test_revoke_unknown_token(self, manager):
        with pytest.raises(TokenNotFoundError):
            manager.revoke("f" * 64)

    def test_lookup_after_expiry(self, manager, clock, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())

        clock.offset = timedelta(days=61)

        with pytest.raises(TokenExpiredError):
            manager.lookup(token)

    def test_revocation_reported_over_expiry(self, manager, clock, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())
        manager.revoke(token)

        clock.offset = timedelta(days=61)

        with pytest.raises(TokenRevokedError):
            manager.lookup(token)

    def test_tokens_are_independent(self, manager, user):
        first, second = manager.generate(), manager.generate()
        for token in (first, second):
            manager.persist(token, user.id, manager.expires_at_from_now())

        manager.revoke(first)

        assert manager.lookup(second) == user.id


class TestStoreFailures:
    def test_duplicate_token_is_internal_error(self, manager, user):
        token = manager.generate()
        manager.persist(token, user.id, manager.expires_at_from_now())

        with pytest.raises(InternalError):
            manager.persist(token, user.id, manager.expires_at_from_now())

    def test_unknown_user_is_internal_error(self, manager):
        with pytest.raises(InternalError):
            manager.persist(manager.generate(), uuid.uuid4(), manager.expires_at_from_now())

    def test_store_outage_is_internal_error(self, clock):
        class BrokenStore:
            def insert_refresh_token(self, token, user_id, expires_at):
                raise StorageError("connection refused")

            def find_active_refresh_token(self, token, now):
                raise StorageError("connection refused")

            def mark_refresh_token_revoked(self, token):
                raise StorageError("connection refused")

        manager = RefreshTokenManager(BrokenStore(), timedelta(days=1), clock=clock)

        with pytest.raises(InternalError):
            manager.persist("a" * 64, uuid.uuid4(), manager.expires_at_from_now())
        with pytest.raises(InternalError):
            manager.lookup("a" * 64)
        with pytest.raises(InternalError):
            manager.revoke("a" * 64)
