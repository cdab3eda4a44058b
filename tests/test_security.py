"""Tests for password hashing and access token verification."""

from datetime import timedelta

from jose import jwt

from app.config import settings
from app.core.security import (
    TokenStatus,
    create_access_token,
    get_password_hash,
    verify_access_token,
    verify_password,
)


def test_password_hash_round_trip() -> None:
    hashed = get_password_hash("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_valid_token() -> None:
    token = create_access_token({"sub": "4b6f3a0e-0000-4000-8000-000000000001"})
    verification = verify_access_token(token)

    assert verification.status is TokenStatus.VALID
    assert verification.is_valid
    assert verification.payload["sub"] == "4b6f3a0e-0000-4000-8000-000000000001"
    assert verification.payload["type"] == "access"


def test_expired_token() -> None:
    token = create_access_token({"sub": "someone"}, expires_delta=timedelta(seconds=-30))
    verification = verify_access_token(token)

    assert verification.status is TokenStatus.EXPIRED
    assert not verification.is_valid
    assert verification.payload == {}


def test_malformed_token() -> None:
    assert verify_access_token("not-a-jwt").status is TokenStatus.MALFORMED


def test_token_signed_with_another_key_is_malformed() -> None:
    token = jwt.encode({"sub": "someone", "type": "access"}, "other-secret", algorithm="HS256")
    assert verify_access_token(token).status is TokenStatus.MALFORMED


def test_token_without_access_type_is_malformed() -> None:
    token = jwt.encode(
        {"sub": "someone", "type": "refresh"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    assert verify_access_token(token).status is TokenStatus.MALFORMED


def test_token_without_subject_is_malformed() -> None:
    token = create_access_token({"role": "patient"})
    assert verify_access_token(token).status is TokenStatus.MALFORMED
