from datetime import timedelta

import pytest
from jose import jwt

from app.services.tokens import (
    AccessClaims,
    InvalidTokenError,
    TokenExpiredError,
    TokenIssuer,
)
from app.tests.factories import FakeClock

SECRET = "unit-test-secret-0123456789abcdef0123"


def _claims(**overrides) -> AccessClaims:
    values = dict(account_id=7, email="a@b.co", role="client", profile_completed=True)
    values.update(overrides)
    return AccessClaims(**values)


def test_access_token_round_trip_and_expiry_window():
    clock = FakeClock()
    issuer = TokenIssuer(secret=SECRET, access_ttl_seconds=900, clock=clock)
    token = issuer.issue_access_token(_claims())

    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["sub"] == "7"
    assert payload["type"] == "access"
    assert payload["exp"] - payload["iat"] == 900
    assert "requires_face_verification" not in payload

    assert issuer.decode_access_token(token) == _claims()


def test_face_challenge_flag_survives_decoding():
    issuer = TokenIssuer(secret=SECRET)
    token = issuer.issue_access_token(_claims(requires_face_verification=True))
    assert issuer.decode_access_token(token).requires_face_verification is True


def test_expired_token_is_refused():
    clock = FakeClock()
    issuer = TokenIssuer(secret=SECRET, clock=clock)
    clock.advance(hours=-2)
    token = issuer.issue_access_token(_claims(), ttl_seconds=60)
    with pytest.raises(TokenExpiredError):
        issuer.decode_access_token(token)


def test_token_signed_with_other_secret_is_refused():
    token = TokenIssuer(secret="x" * 40).issue_access_token(_claims())
    with pytest.raises(InvalidTokenError):
        TokenIssuer(secret=SECRET).decode_access_token(token)


def test_token_without_access_type_is_refused():
    token = jwt.encode({"sub": "7", "email": "a@b.co"}, SECRET, algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        TokenIssuer(secret=SECRET).decode_access_token(token)


def test_refresh_tokens_are_random_and_expire_after_lifetime():
    clock = FakeClock()
    issuer = TokenIssuer(secret=SECRET, refresh_lifetime=timedelta(days=7), clock=clock)
    first, second = issuer.issue_refresh_token(), issuer.issue_refresh_token()
    assert first != second
    assert len(first) >= 64
    assert issuer.refresh_token_expiry() == clock.now + timedelta(days=7)
