"""Unit tests for the in-memory store."""

import threading
import uuid
from datetime import timedelta

import pytest

from chirpy.storage.errors import (
    ConstraintViolation,
    RecordNotFound,
    RefreshTokenExpired,
    RefreshTokenRevoked,
)
from chirpy.storage.memory import MemoryStore
from chirpy.storage.models import utcnow


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def user(store):
    return store.create_user("store@example.com", "hash-value")


class TestUsers:
    def test_create_and_fetch(self, store, user):
        assert store.users[user.id] == user
        assert store.get_user_by_email("store@example.com") == user
        assert store.get_password_hash(user.id) == "hash-value"

    def test_duplicate_email(self, store, user):
        with pytest.raises(ConstraintViolation):
            store.create_user("store@example.com", "other")

    def test_unknown_user(self, store):
        assert store.get_user_by_email("nobody@example.com") is None
        assert store.get_password_hash(uuid.uuid4()) is None

    def test_update_password_hash(self, store, user):
        before = user.updated_at

        store.update_password_hash(user.id, "new-hash")

        assert store.get_password_hash(user.id) == "new-hash"
        assert user.updated_at >= before

    def test_update_password_hash_unknown_user(self, store):
        with pytest.raises(RecordNotFound):
            store.update_password_hash(uuid.uuid4(), "new-hash")

    def test_delete_all_users_cascades(self, store, user):
        store.insert_refresh_token("t" * 64, user.id, utcnow() + timedelta(days=1))
        store.create_chirp("hello", user.id)

        assert store.delete_all_users() == 1
        assert store.get_user_by_email("store@example.com") is None
        assert store.get_refresh_token("t" * 64) is None
        assert store.list_chirps() == []


class TestRefreshTokens:
    def test_expiry_must_follow_creation(self, store, user):
        with pytest.raises(ConstraintViolation):
            store.insert_refresh_token("t" * 64, user.id, utcnow() - timedelta(seconds=1))

    def test_find_active(self, store, user):
        store.insert_refresh_token("t" * 64, user.id, utcnow() + timedelta(days=1))

        assert store.find_active_refresh_token("t" * 64, utcnow()) == user.id

    def test_find_states(self, store, user):
        store.insert_refresh_token("a" * 64, user.id, utcnow() + timedelta(hours=1))
        store.insert_refresh_token("b" * 64, user.id, utcnow() + timedelta(hours=1))
        store.mark_refresh_token_revoked("b" * 64)

        with pytest.raises(RecordNotFound):
            store.find_active_refresh_token("c" * 64, utcnow())
        with pytest.raises(RefreshTokenExpired):
            store.find_active_refresh_token("a" * 64, utcnow() + timedelta(hours=2))
        with pytest.raises(RefreshTokenRevoked):
            store.find_active_refresh_token("b" * 64, utcnow())

    def test_revoke_unknown(self, store):
        with pytest.raises(RecordNotFound):
            store.mark_refresh_token_revoked("missing")

    def test_concurrent_revokes_keep_first_timestamp(self, store, user):
        store.insert_refresh_token("t" * 64, user.id, utcnow() + timedelta(days=1))
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            store.mark_refresh_token_revoked("t" * 64)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        first = store.get_refresh_token("t" * 64).revoked_at

        store.mark_refresh_token_revoked("t" * 64)
        assert store.get_refresh_token("t" * 64).revoked_at == first
        with pytest.raises(RefreshTokenRevoked):
            store.find_active_refresh_token("t" * 64, utcnow())


class TestChirps:
    def test_chirp_requires_author(self, store):
        with pytest.raises(ConstraintViolation):
            store.create_chirp("orphan", uuid.uuid4())

    def test_list_sorted_by_created_at(self, store, user):
        first = store.create_chirp("one", user.id)
        second = store.create_chirp("two", user.id)

        assert [c.id for c in store.list_chirps()] == [first.id, second.id]
