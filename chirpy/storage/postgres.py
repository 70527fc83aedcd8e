from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from psycopg import errors
from psycopg import Error as PsycopgError
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from chirpy.logging import get_logger
from chirpy.storage.errors import (
    ConstraintViolation,
    RecordNotFound,
    RefreshTokenExpired,
    RefreshTokenRevoked,
    StorageError,
)
from chirpy.storage.models import Chirp, RefreshToken, User

_REQUIRED_TABLES = ("users", "refresh_tokens", "chirps")


def load_schema_sql() -> str:
    return (Path(__file__).resolve().parent.parent / "sql" / "schema.sql").read_text()


class PostgresStore:
    """Postgres-backed store for users, refresh tokens and chirps."""

    def __init__(self, dsn: str, *, min_size: int = 2, max_size: int = 10) -> None:
        self.dsn = dsn
        self.logger = get_logger(__name__)
        self.pool = ConnectionPool(
            self.dsn,
            min_size=min_size,
            max_size=max_size,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._verify_required_schema()

    def _connect(self):
        return self.pool.connection()

    def _verify_required_schema(self) -> None:
        """Ensure the tables exist before serving requests."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT table_name FROM information_schema.tables WHERE table_name = ANY(%s)",
                (list(_REQUIRED_TABLES),),
            ).fetchall()
        present = {row["table_name"] for row in rows}
        missing = [t for t in _REQUIRED_TABLES if t not in present]
        if missing:
            self.logger.error("postgres_schema_missing", missing_tables=missing)
            raise RuntimeError(
                f"database schema incomplete, missing tables: {', '.join(missing)}; "
                "apply chirpy/sql/schema.sql"
            )

    @staticmethod
    def _row_to_user(row: dict) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_refresh_token(row: dict) -> RefreshToken:
        return RefreshToken(
            token=row["token"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            expires_at=row["expires_at"],
            revoked_at=row.get("revoked_at"),
        )

    @staticmethod
    def _row_to_chirp(row: dict) -> Chirp:
        return Chirp(
            id=row["id"],
            body=row["body"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _fetchone(self, sql: str, params: tuple[Any, ...]) -> Optional[dict]:
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchone()
        except errors.UniqueViolation as exc:
            raise ConstraintViolation("duplicate key", {"constraint": exc.diag.constraint_name}) from exc
        except errors.ForeignKeyViolation as exc:
            raise ConstraintViolation("referenced row missing", {"constraint": exc.diag.constraint_name}) from exc
        except PsycopgError as exc:
            self.logger.error("postgres_query_failed", error_type=type(exc).__name__)
            raise StorageError("database operation failed") from exc

    # users
    def create_user(self, email: str, hashed_password: str) -> User:
        try:
            row = self._fetchone(
                """
                INSERT INTO users (id, email, hashed_password)
                VALUES (%s, %s, %s)
                RETURNING id, email, created_at, updated_at
                """,
                (uuid.uuid4(), email, hashed_password),
            )
        except ConstraintViolation as exc:
            raise ConstraintViolation("email already exists", {"field": "email"}) from exc
        if row is None:
            raise StorageError("insert returned no row")
        return self._row_to_user(row)

    def update_password_hash(self, user_id: uuid.UUID, hashed_password: str) -> None:
        row = self._fetchone(
            """
            UPDATE users SET hashed_password = %s, updated_at = now()
            WHERE id = %s
            RETURNING id
            """,
            (hashed_password, user_id),
        )
        if row is None:
            raise RecordNotFound("user")

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._fetchone(
            "SELECT id, email, created_at, updated_at FROM users WHERE email = %s",
            (email,),
        )
        return self._row_to_user(row) if row else None

    def get_password_hash(self, user_id: uuid.UUID) -> Optional[str]:
        row = self._fetchone(
            "SELECT hashed_password FROM users WHERE id = %s", (user_id,)
        )
        return str(row["hashed_password"]) if row else None

    def delete_all_users(self) -> int:
        try:
            with self._connect() as conn:
                result = conn.execute("DELETE FROM users")
                return result.rowcount
        except PsycopgError as exc:
            self.logger.error("postgres_query_failed", error_type=type(exc).__name__)
            raise StorageError("database operation failed") from exc

    # refresh tokens
    def insert_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshToken:
        row = self._fetchone(
            """
            INSERT INTO refresh_tokens (token, user_id, expires_at)
            VALUES (%s, %s, %s)
            RETURNING *
            """,
            (token, user_id, expires_at),
        )
        if row is None:
            raise StorageError("insert returned no row")
        return self._row_to_refresh_token(row)

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        row = self._fetchone("SELECT * FROM refresh_tokens WHERE token = %s", (token,))
        return self._row_to_refresh_token(row) if row else None

    def find_active_refresh_token(self, token: str, now: datetime) -> uuid.UUID:
        # A single row read; the state is classified from that one snapshot
        row = self._fetchone(
            "SELECT user_id, expires_at, revoked_at FROM refresh_tokens WHERE token = %s",
            (token,),
        )
        if row is None:
            raise RecordNotFound("refresh_token")
        if row["revoked_at"] is not None:
            raise RefreshTokenRevoked()
        if now > row["expires_at"]:
            raise RefreshTokenExpired()
        return row["user_id"]

    def mark_refresh_token_revoked(self, token: str) -> None:
        # COALESCE keeps the first revocation time on repeated calls
        row = self._fetchone(
            """
            UPDATE refresh_tokens
            SET revoked_at = COALESCE(revoked_at, now()),
                updated_at = CASE WHEN revoked_at IS NULL THEN now() ELSE updated_at END
            WHERE token = %s
            RETURNING token
            """,
            (token,),
        )
        if row is None:
            raise RecordNotFound("refresh_token")

    # chirps
    def create_chirp(self, body: str, user_id: uuid.UUID) -> Chirp:
        row = self._fetchone(
            """
            INSERT INTO chirps (id, body, user_id)
            VALUES (%s, %s, %s)
            RETURNING *
            """,
            (uuid.uuid4(), body, user_id),
        )
        if row is None:
            raise StorageError("insert returned no row")
        return self._row_to_chirp(row)

    def get_chirp(self, chirp_id: uuid.UUID) -> Optional[Chirp]:
        row = self._fetchone("SELECT * FROM chirps WHERE id = %s", (chirp_id,))
        return self._row_to_chirp(row) if row else None

    def list_chirps(self) -> List[Chirp]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM chirps ORDER BY created_at ASC"
                ).fetchall()
        except PsycopgError as exc:
            self.logger.error("postgres_query_failed", error_type=type(exc).__name__)
            raise StorageError("database operation failed") from exc
        return [self._row_to_chirp(row) for row in rows]

    def close(self) -> None:
        self.pool.close()
