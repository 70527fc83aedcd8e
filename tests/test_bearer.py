import pytest

from chirpy.service.bearer import extract_bearer_token
from chirpy.service.errors import HeaderMissingError, MalformedHeaderError


def test_extracts_token():
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_token_content_is_not_inspected():
    assert extract_bearer_token("Bearer ???") == "???"


@pytest.mark.parametrize("value", [None, ""])
def test_missing_header(value):
    with pytest.raises(HeaderMissingError):
        extract_bearer_token(value)


@pytest.mark.parametrize(
    "value",
    [
        "Bearer",
        "Bearer ",
        "bearer abc",
        "Basic abc",
        "Bearer  abc",
        "Bearer abc def",
        "abc",
        " Bearer abc",
        "Bearer abc ",
    ],
)
def test_malformed_header(value):
    with pytest.raises(MalformedHeaderError) as excinfo:
        extract_bearer_token(value)
    assert excinfo.value.status_code == 400
