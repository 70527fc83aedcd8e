"""Tests for the error envelope format and error handling.

Error responses have the shape:
{
    "status": "error",
    "error": {
        "code": "<stable_code>",
        "message": "<human_readable>",
        "details": <object|array|null>
    }
}
"""

import json

import pytest
from pydantic import ValidationError

from chirpy.api.error_handling import (
    _STATUS_TO_CODE,
    _error_code_for_status,
    error_response,
    unauthorized_response,
)
from chirpy.api.schemas import ErrorBody, ErrorEnvelope
from chirpy.service.errors import (
    AuthenticationError,
    InternalError,
    InvalidCredentialsError,
    ServiceError,
    SignatureInvalidError,
    SubjectInvalidError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRevokedError,
)


class TestErrorBody:
    def test_required_fields(self):
        error = ErrorBody(code="unauthorized", message="unauthorized")

        assert error.details is None

    def test_invalid_code_rejected(self):
        with pytest.raises(ValidationError):
            ErrorBody(code="teapot", message="no")

    def test_envelope_status_must_be_error(self):
        with pytest.raises(ValidationError):
            ErrorEnvelope(status="ok", error=ErrorBody(code="not_found", message="x"))


class TestStatusMapping:
    @pytest.mark.parametrize(
        "status,code",
        [
            (400, "validation_error"),
            (401, "unauthorized"),
            (403, "forbidden"),
            (404, "not_found"),
            (409, "conflict"),
            (500, "server_error"),
        ],
    )
    def test_known_statuses(self, status, code):
        assert _STATUS_TO_CODE[status] == code

    def test_unknown_status_is_server_error(self):
        assert _error_code_for_status(418) == "server_error"

    def test_error_response_shape(self):
        response = error_response(404, "chirp not found")
        body = json.loads(response.body)

        assert response.status_code == 404
        assert body == {
            "status": "error",
            "error": {"code": "not_found", "message": "chirp not found", "details": None},
        }

    def test_unauthorized_response_is_generic(self):
        body = json.loads(unauthorized_response().body)

        assert body["error"] == {
            "code": "unauthorized",
            "message": "unauthorized",
            "details": None,
        }


class TestServiceErrors:
    @pytest.mark.parametrize(
        "exc_cls,reason",
        [
            (InvalidCredentialsError, "invalid_credentials"),
            (SignatureInvalidError, "signature_invalid"),
            (TokenExpiredError, "expired"),
            (TokenRevokedError, "revoked"),
            (TokenNotFoundError, "not_found"),
            (SubjectInvalidError, "subject_invalid"),
        ],
    )
    def test_auth_errors_carry_reason(self, exc_cls, reason):
        exc = exc_cls("detail for logs")

        assert isinstance(exc, AuthenticationError)
        assert exc.status_code == 401
        assert exc.error_code == "unauthorized"
        assert exc.reason == reason

    def test_internal_error(self):
        exc = InternalError("store down")

        assert exc.status_code == 500
        assert exc.error_code == "server_error"

    def test_overrides(self):
        exc = ServiceError("custom", status_code=409, error_code="conflict", detail={"k": "v"})

        assert (exc.status_code, exc.error_code, exc.detail) == (409, "conflict", {"k": "v"})
