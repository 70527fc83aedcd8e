from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from chirpy.service.errors import (
    MalformedTokenError,
    SignatureInvalidError,
    SubjectInvalidError,
    TokenExpiredError,
)

ISSUER = "chirpy"

_HEADER = {"alg": "HS256", "typ": "JWT"}


def _encode_segment(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _decode_segment(segment: str) -> bytes:
    padding = "=" * ((4 - len(segment) % 4) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _sign(secret: str, signing_input: str) -> str:
    digest = hmac.new(secret.encode(), signing_input.encode(), hashlib.sha256).digest()
    return _encode_segment(digest)


class SessionTokenSigner:
    """Issues and validates short-lived HS256 session tokens.

    Claims are ``{iss, sub, iat, exp}``. Tokens are never stored; validity is
    the signature plus the embedded expiry, checked strictly with no skew
    allowance. The signer keeps no state between calls.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(timezone.utc)

    def issue(self, user_id: uuid.UUID, secret: str, ttl: timedelta) -> str:
        if ttl <= timedelta(0):
            raise ValueError("session token ttl must be positive")
        issued_at = self._now()
        # iat rounds down and exp rounds up, so exp never falls before issuedAt + ttl
        iat = int(issued_at.timestamp())
        exp = math.ceil(issued_at.timestamp() + ttl.total_seconds())
        claims = {
            "iss": ISSUER,
            "sub": str(user_id),
            "iat": iat,
            "exp": exp,
        }
        header_enc = _encode_segment(json.dumps(_HEADER, separators=(",", ":")).encode())
        payload_enc = _encode_segment(json.dumps(claims, separators=(",", ":")).encode())
        signing_input = f"{header_enc}.{payload_enc}"
        return f"{signing_input}.{_sign(secret, signing_input)}"

    def validate(self, token: str, secret: str) -> uuid.UUID:
        """Return the user id carried by ``token``.

        Checks run in order: structure, signature, issuer, expiry, subject.
        """
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise MalformedTokenError("token must have three segments") from None

        try:
            header = json.loads(_decode_segment(header_b64))
        except (binascii.Error, ValueError):
            raise MalformedTokenError("token header is not valid JSON") from None
        # Only HS256 is accepted; alg=none and asymmetric algs are rejected
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise SignatureInvalidError("unsupported token algorithm")

        expected_sig = _sign(secret, f"{header_b64}.{payload_b64}")
        # Bytes comparison; header values can carry non-ASCII characters
        if not hmac.compare_digest(
            expected_sig.encode(), sig_b64.encode("utf-8", "surrogatepass")
        ):
            raise SignatureInvalidError("token signature mismatch")

        try:
            claims: Any = json.loads(_decode_segment(payload_b64))
        except (binascii.Error, ValueError):
            raise MalformedTokenError("token payload is not valid JSON") from None
        if not isinstance(claims, dict):
            raise MalformedTokenError("token payload is not an object")

        if claims.get("iss") != ISSUER:
            raise SignatureInvalidError("token issuer mismatch")

        exp = claims.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise MalformedTokenError("token has no numeric expiry")
        if self._now().timestamp() > exp:
            raise TokenExpiredError("token expired")

        try:
            return uuid.UUID(str(claims.get("sub")))
        except ValueError:
            raise SubjectInvalidError("token subject is not a user id") from None
