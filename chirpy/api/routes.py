from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Header, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse

from chirpy.api.error_handling import log_auth_failure, unauthorized_response
from chirpy.api.schemas import (
    ChirpRequest,
    ChirpResponse,
    CredentialsRequest,
    LoginResponse,
    TokenResponse,
    UserResponse,
)
from chirpy.config import Platform
from chirpy.logging import get_logger
from chirpy.service.errors import (
    ForbiddenError,
    HeaderMissingError,
    MalformedHeaderError,
    MalformedTokenError,
    ValidationError,
)
from chirpy.service.runtime import get_runtime
from chirpy.storage.models import Chirp, User

logger = get_logger(__name__)

router = APIRouter(prefix="/api")
admin_router = APIRouter(prefix="/admin")

_METRICS_PAGE = """<html>
  <body>
    <h1>Welcome, Chirpy Admin</h1>
    <p>Chirpy has been visited {hits} times!</p>
  </body>
</html>
"""


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        created_at=user.created_at,
        updated_at=user.updated_at,
        email=user.email,
    )


def _chirp_response(chirp: Chirp) -> ChirpResponse:
    return ChirpResponse(
        id=chirp.id,
        created_at=chirp.created_at,
        updated_at=chirp.updated_at,
        body=chirp.body,
        user_id=chirp.user_id,
    )


@router.get("/healthz", response_class=PlainTextResponse, tags=["health"])
async def healthz() -> str:
    return "OK"


@router.post("/users", response_model=UserResponse, status_code=201, tags=["users"])
async def create_user(body: CredentialsRequest):
    """Register a user. The password hash is never part of the response."""
    runtime = get_runtime()
    user = await runtime.auth.signup(body.email, body.password)
    logger.info("user_created", user_id=str(user.id))
    return _user_response(user)


@router.post("/login", response_model=LoginResponse, tags=["auth"])
async def login(body: CredentialsRequest):
    """Exchange email and password for a session token and a refresh token.

    Unknown emails and wrong passwords produce the same 401 response.
    """
    runtime = get_runtime()
    result = await runtime.auth.login(body.email, body.password)
    logger.info("login_succeeded", user_id=str(result.user.id))
    return LoginResponse(
        id=result.user.id,
        created_at=result.user.created_at,
        updated_at=result.user.updated_at,
        email=result.user.email,
        token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post("/refresh", response_model=TokenResponse, tags=["auth"])
async def refresh(authorization: Optional[str] = Header(None)):
    runtime = get_runtime()
    return TokenResponse(token=runtime.auth.refresh(authorization))


@router.post("/revoke", status_code=204, tags=["auth"])
async def revoke(authorization: Optional[str] = Header(None)):
    runtime = get_runtime()
    runtime.auth.revoke(authorization)
    logger.info("refresh_token_revoked")
    return Response(status_code=204)


@router.post("/chirps", response_model=ChirpResponse, status_code=201, tags=["chirps"])
async def create_chirp(
    request: Request, body: ChirpRequest, authorization: Optional[str] = Header(None)
):
    runtime = get_runtime()
    try:
        user_id = runtime.auth.authenticate(authorization)
    except (HeaderMissingError, MalformedHeaderError, MalformedTokenError) as exc:
        # Publishing needs a usable session token; any shape problem is unauthenticated
        log_auth_failure(request, exc)
        return unauthorized_response()
    chirp = runtime.chirps.publish(user_id, body.body)
    logger.info("chirp_created", chirp_id=str(chirp.id), user_id=str(user_id))
    return _chirp_response(chirp)


@router.get("/chirps", response_model=List[ChirpResponse], tags=["chirps"])
async def list_chirps():
    runtime = get_runtime()
    return [_chirp_response(chirp) for chirp in runtime.chirps.list_chirps()]


@router.get("/chirps/{chirp_id}", response_model=ChirpResponse, tags=["chirps"])
async def get_chirp(chirp_id: str):
    try:
        parsed = uuid.UUID(chirp_id)
    except ValueError:
        raise ValidationError("invalid chirp id", detail={"chirp_id": chirp_id}) from None
    runtime = get_runtime()
    return _chirp_response(runtime.chirps.get_chirp(parsed))


@admin_router.get("/metrics", response_class=HTMLResponse, tags=["admin"])
async def metrics() -> str:
    runtime = get_runtime()
    return _METRICS_PAGE.format(hits=runtime.metrics.value)


@admin_router.post("/reset", response_class=PlainTextResponse, tags=["admin"])
async def reset() -> str:
    """Delete every user and zero the hit counter. Only served on ``dev``."""
    runtime = get_runtime()
    if runtime.settings.platform != Platform.DEV:
        raise ForbiddenError("reset is only allowed on the dev platform")
    deleted = runtime.store.delete_all_users()
    runtime.metrics.reset()
    logger.warning("admin_reset", users_deleted=deleted)
    return "Hits reset to 0 and database reset to initial state."
