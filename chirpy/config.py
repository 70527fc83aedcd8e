from __future__ import annotations

import os
import secrets
from datetime import timedelta
from enum import Enum
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chirpy.logging import get_logger

logger = get_logger(__name__)


class Platform(str, Enum):
    """Deployment platform; admin reset is only served on ``dev``."""

    DEV = "dev"
    PROD = "prod"


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings, read once at start-up and shared read-only."""

    database_url: str = env_field(
        "postgresql://localhost:5432/chirpy", "DATABASE_URL"
    )
    platform: Platform = env_field(Platform.PROD, "PLATFORM")
    use_memory_store: bool = env_field(False, "USE_MEMORY_STORE")
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Allow a generated signing secret and runtime resets for tests.",
    )
    jwt_secret: str | None = env_field(None, "JWT_SECRET", repr=False)
    access_token_ttl_minutes: int = env_field(
        60,
        "ACCESS_TOKEN_TTL_MINUTES",
        description="Lifetime of signed session tokens",
    )
    refresh_token_ttl_days: int = env_field(
        60,
        "REFRESH_TOKEN_TTL_DAYS",
        description="Lifetime of opaque refresh tokens",
    )
    password_hash_workers: int = env_field(
        4,
        "PASSWORD_HASH_WORKERS",
        description="Size of the thread pool that runs argon2 hashing",
    )
    static_root: str = env_field("static", "STATIC_ROOT")

    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(
        "access_token_ttl_minutes", "refresh_token_ttl_days", "password_hash_workers"
    )
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @model_validator(mode="after")
    def _ensure_jwt_secret(self) -> "Settings":
        if self.jwt_secret:
            return self
        if not self.test_mode:
            raise ValueError("JWT_SECRET must be set")
        # Tokens issued with a generated secret do not survive a restart
        logger.warning("jwt_secret_generated", reason="test_mode")
        object.__setattr__(self, "jwt_secret", secrets.token_urlsafe(64))
        return self

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_ttl_days)


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
