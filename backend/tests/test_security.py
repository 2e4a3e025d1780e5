from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError, jwt

from tabiplan.core.security import (
    create_access_token, decode_user_id, get_current_user_id, settings,
)
from tabiplan.main import redact_tokens


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_token_round_trip_yields_subject():
    token = create_access_token("user-42")
    assert decode_user_id(token) == "user-42"


def test_expired_token_rejected():
    token = create_access_token("user-42", expires_delta=timedelta(seconds=-5))
    with pytest.raises(JWTError):
        decode_user_id(token)


def test_token_without_subject_rejected():
    token = jwt.encode({"type": "access"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_user_id(token)


def test_token_signed_with_other_secret_rejected():
    token = jwt.encode({"sub": "user-42"}, "not-the-secret", algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_user_id(token)


async def test_dependency_resolves_user_id():
    assert await get_current_user_id(bearer(create_access_token("user-7"))) == "user-7"


async def test_dependency_rejects_missing_or_bad_credentials():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user_id(None)
    assert exc_info.value.status_code == 401

    with pytest.raises(HTTPException):
        await get_current_user_id(bearer("garbage"))


def test_redact_bearer_header():
    event = {"headers": "Authorization: Bearer abc.def-ghi"}
    out = redact_tokens(None, None, event.copy())
    assert out["headers"] == "Authorization: Bearer REDACTED"


def test_redact_jwt_in_nested_values():
    token = create_access_token("user-1")
    event = {"a": {"b": ["foo", f"token={token}"]}}
    out = redact_tokens(None, None, event.copy())
    assert out["a"]["b"] == ["foo", "token=REDACTED"]
