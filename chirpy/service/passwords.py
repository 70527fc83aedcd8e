"""Argon2id password hashing.

Cost parameters are fixed and embedded in every PHC-format hash string
(``$argon2id$v=19$m=65536,t=1,p=4$<salt>$<digest>``), so a hash stays
verifiable across restarts without storing the parameters separately.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from argon2 import PasswordHasher as _Argon2Hasher
from argon2 import Type
from argon2.exceptions import (
    HashingError,
    InvalidHashError,
    VerificationError,
    VerifyMismatchError,
)

from chirpy.service.errors import InternalError

TIME_COST = 1
MEMORY_COST_KIB = 64 * 1024
PARALLELISM = 4
HASH_LEN = 32
SALT_LEN = 16

ALGORITHM = "argon2id"


class PasswordHasher:
    """One-way memory-hard hashing with constant-time verification."""

    def __init__(
        self,
        *,
        time_cost: int = TIME_COST,
        memory_cost: int = MEMORY_COST_KIB,
        parallelism: int = PARALLELISM,
        hash_len: int = HASH_LEN,
        salt_len: int = SALT_LEN,
    ) -> None:
        self._hasher = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
            type=Type.ID,
        )

    def hash(self, password: str) -> str:
        try:
            return self._hasher.hash(password)
        except HashingError as exc:
            raise InternalError("password hashing failed") from exc

    def verify(self, password: str, password_hash: str) -> bool:
        """Return whether ``password`` matches ``password_hash``.

        A wrong password is ``False``; a hash that cannot be parsed is an
        ``InternalError``. Neither value is ever included in the error.
        """
        try:
            return self._hasher.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except InvalidHashError:
            raise InternalError("stored password hash is malformed") from None
        except VerificationError:
            raise InternalError("password verification failed") from None

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            return self._hasher.check_needs_rehash(password_hash)
        except InvalidHashError:
            raise InternalError("stored password hash is malformed") from None


class HashingPool:
    """Runs password hashing off the event loop on a bounded thread pool.

    Argon2 is CPU and memory heavy; under a burst of logins the pool size,
    not the number of accepted requests, bounds how many run at once.
    """

    def __init__(self, hasher: PasswordHasher, max_workers: int = 4) -> None:
        self.hasher = hasher
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="password-hash"
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            raise InternalError("password hashing pool is shut down")
        return self._executor

    async def hash(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_executor(), self.hasher.hash, password
        )

    async def verify(self, password: str, password_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_executor(), self.hasher.verify, password, password_hash
        )

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
