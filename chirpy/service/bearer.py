from __future__ import annotations

import re
from typing import Optional

from chirpy.service.errors import HeaderMissingError, MalformedHeaderError

_BEARER_PATTERN = re.compile(r"Bearer (\S+)")


def extract_bearer_token(header_value: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` value.

    The scheme is matched case-sensitively and must be followed by exactly
    one space and a single run of non-whitespace characters. The token's
    content is not inspected here.
    """
    if not header_value:
        raise HeaderMissingError("authorization header missing")
    match = _BEARER_PATTERN.fullmatch(header_value)
    if not match:
        raise MalformedHeaderError("authorization header must be 'Bearer <token>'")
    return match.group(1)
