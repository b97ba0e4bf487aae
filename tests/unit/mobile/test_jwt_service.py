from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from bizflow.mobile.domain.entities import TokenKind, TokenPayload
from bizflow.mobile.domain.exceptions import ExpiredTokenError, InvalidTokenError, WrongTokenKindError
from bizflow.mobile.infrastructure.adapters import JWTService

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "r" * 32

PAYLOAD = TokenPayload(
    user_id="user-1",
    tenant_id="tenant-1",
    device_id="dev-1",
    role="staff",
    permissions=("customers:read", "orders:write"),
)


def make_service(**kwargs) -> JWTService:
    return JWTService(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET, **kwargs)


def test_issue_pair_uses_15_minute_access_and_30_day_refresh():
    svc = make_service()
    before = datetime.now(timezone.utc)
    pair = svc.issue_pair(PAYLOAD)

    assert abs((pair.access_expires_at - before) - timedelta(minutes=15)) <= timedelta(seconds=1)
    assert abs((pair.refresh_expires_at - before) - timedelta(days=30)) <= timedelta(seconds=1)
    assert pair.expires_in_seconds == 900

    access_claims = pyjwt.decode(pair.access_token, options={"verify_signature": False})
    assert access_claims["exp"] - access_claims["iat"] == 15 * 60
    assert access_claims["type"] == "access"
    assert access_claims["iss"] == "bizflow"
    assert access_claims["aud"] == "bizflow-mobile"
    assert access_claims["jti"]


def test_each_token_gets_a_unique_jti():
    svc = make_service()
    a = pyjwt.decode(svc.issue(TokenKind.ACCESS, PAYLOAD), options={"verify_signature": False})
    b = pyjwt.decode(svc.issue(TokenKind.ACCESS, PAYLOAD), options={"verify_signature": False})
    assert a["jti"] != b["jti"]


def test_verify_round_trips_the_payload():
    svc = make_service()
    pair = svc.issue_pair(PAYLOAD)
    assert svc.verify(pair.access_token, TokenKind.ACCESS) == PAYLOAD
    assert svc.verify(pair.refresh_token, TokenKind.REFRESH) == PAYLOAD


def test_access_token_on_refresh_path_is_wrong_kind():
    svc = make_service()
    token = svc.issue(TokenKind.ACCESS, PAYLOAD)
    with pytest.raises(WrongTokenKindError):
        svc.verify(token, TokenKind.REFRESH)


def test_refresh_token_on_access_path_is_wrong_kind():
    svc = make_service()
    token = svc.issue(TokenKind.REFRESH, PAYLOAD)
    with pytest.raises(WrongTokenKindError):
        svc.verify(token, TokenKind.ACCESS)


def test_expired_token():
    svc = make_service()
    token = svc.issue(TokenKind.ACCESS, PAYLOAD, lifetime=timedelta(seconds=-5))
    with pytest.raises(ExpiredTokenError):
        svc.verify(token, TokenKind.ACCESS)


def test_token_signed_with_another_secret_is_invalid():
    other = JWTService(access_secret="x" * 32, refresh_secret="y" * 32)
    token = other.issue(TokenKind.ACCESS, PAYLOAD)
    with pytest.raises(InvalidTokenError) as excinfo:
        make_service().verify(token, TokenKind.ACCESS)
    assert excinfo.type is InvalidTokenError


@pytest.mark.parametrize("override", [{"issuer": "someone-else"}, {"audience": "web"}])
def test_issuer_and_audience_are_checked(override):
    foreign = make_service(**override)
    token = foreign.issue(TokenKind.ACCESS, PAYLOAD)
    with pytest.raises(InvalidTokenError) as excinfo:
        make_service().verify(token, TokenKind.ACCESS)
    assert excinfo.type is InvalidTokenError


def test_garbage_and_untyped_tokens_are_invalid():
    svc = make_service()
    with pytest.raises(InvalidTokenError):
        svc.verify("not-a-jwt", TokenKind.ACCESS)

    untyped = pyjwt.encode({"sub": "user-1"}, ACCESS_SECRET, algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        svc.verify(untyped, TokenKind.ACCESS)


def test_secrets_must_differ():
    with pytest.raises(ValueError):
        JWTService(access_secret="same", refresh_secret="same")
