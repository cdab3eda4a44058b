"""Security utilities for JWT and password handling."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


class TokenStatus(str, Enum):
    """Outcome of an access token check."""

    VALID = "valid"
    EXPIRED = "expired"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenVerification:
    """Result of verifying an access token."""

    status: TokenStatus
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.status is TokenStatus.VALID


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def verify_access_token(token: str) -> TokenVerification:
    """
    Verify a JWT access token.

    Args:
        token: JWT token to verify

    Returns:
        Typed verification result; the payload is only set when valid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        return TokenVerification(TokenStatus.EXPIRED)
    except JWTError:
        return TokenVerification(TokenStatus.MALFORMED)

    # Verify token type and subject
    if payload.get("type") != "access" or not isinstance(payload.get("sub"), str):
        return TokenVerification(TokenStatus.MALFORMED)

    return TokenVerification(TokenStatus.VALID, payload)
