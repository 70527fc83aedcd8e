from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from chirpy.api.schemas import ErrorBody, ErrorEnvelope
from chirpy.logging import get_logger
from chirpy.service.errors import AuthenticationError, ServiceError
from chirpy.storage.errors import ConstraintViolation

logger = get_logger(__name__)

_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "validation_error",
    409: "conflict",
    422: "validation_error",
    500: "server_error",
}

UNAUTHORIZED_MESSAGE = "unauthorized"


def _error_code_for_status(status_code: int) -> str:
    return _STATUS_TO_CODE.get(status_code, "server_error")


def error_response(
    status_code: int,
    message: str,
    details: dict | list | None = None,
    code: str | None = None,
) -> JSONResponse:
    """Build the ``{"status": "error", "error": {...}}`` response."""
    error_code = code or _error_code_for_status(status_code)
    envelope = ErrorEnvelope(
        error=ErrorBody(code=error_code, message=message, details=details or None)
    )
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


def unauthorized_response() -> JSONResponse:
    return error_response(401, UNAUTHORIZED_MESSAGE, code="unauthorized")


def log_auth_failure(request: Request, exc: ServiceError) -> None:
    """Record which check failed without exposing it to the client."""
    logger.warning(
        "auth_failed",
        path=request.url.path,
        method=request.method,
        error_class=type(exc).__name__,
        reason=getattr(exc, "reason", exc.error_code),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error envelope handlers for service and storage errors."""

    @app.exception_handler(ConstraintViolation)
    async def handle_constraint_violation(request: Request, exc: ConstraintViolation):
        logger.warning(
            "constraint_violation",
            path=request.url.path,
            method=request.method,
            message=exc.message,
            detail=exc.detail,
        )
        return error_response(409, exc.message, exc.detail, code="conflict")

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        log_auth_failure(request, exc)
        return unauthorized_response()

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            error_class=type(exc).__name__,
            message=exc.message,
        )
        if exc.status_code >= 500:
            return error_response(500, "internal server error", code="server_error")
        return error_response(exc.status_code, exc.message, exc.detail, code=exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            error_count=len(errors),
        )
        return error_response(400, "invalid request body", errors, code="validation_error")

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        if exc.status_code >= 500:
            logger.error(
                "http_error",
                path=request.url.path,
                method=request.method,
                status_code=exc.status_code,
                message=message,
            )
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return error_response(500, "internal server error", code="server_error")
