from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

_VALID_ERROR_CODES = {
    "validation_error",
    "unauthorized",
    "forbidden",
    "not_found",
    "conflict",
    "server_error",
}

# Bodies above this size are rejected before the chirp length rule runs
MAX_BODY_FIELD_LENGTH = 65536


class ErrorBody(BaseModel):
    """Error envelope body with a stable code value."""

    code: str
    message: str
    details: Optional[Any] = None

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class ErrorEnvelope(BaseModel):
    status: str = Field("error", pattern="^error$")
    error: ErrorBody


class CredentialsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., max_length=1024)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value


class ChirpRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    body: str = Field(..., max_length=MAX_BODY_FIELD_LENGTH)


class UserResponse(BaseModel):
    id: UUID
    created_at: datetime
    updated_at: datetime
    email: str


class LoginResponse(UserResponse):
    token: str
    refresh_token: str


class TokenResponse(BaseModel):
    token: str


class ChirpResponse(BaseModel):
    id: UUID
    created_at: datetime
    updated_at: datetime
    body: str
    user_id: UUID
