"""Password hashing strategies and JWT creation/verification for sessions."""

import base64
import hashlib
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import bcrypt
import jwt

from app.core.config import settings

# Min/max lengths for username and password validation (BSIMM / input validation).
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def _prehash(plain_password: str) -> bytes:
    # bcrypt reads only 72 bytes; a base64 SHA-256 digest (44 bytes) keeps every byte significant.
    return base64.b64encode(hashlib.sha256(plain_password.encode("utf-8")).digest())


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    salt = bcrypt.gensalt(rounds=rounds if rounds is not None else settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prehash(plain_password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    try:
        return bcrypt.checkpw(_prehash(plain_password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class PasswordHasher(Protocol):
    """One-way hashing strategy used by the credential store."""

    def hash(self, plain_password: str) -> str: ...

    def verify(self, plain_password: str, hashed: str) -> bool: ...


class BcryptHasher:
    """Default strategy: bcrypt with a configurable cost."""

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds if rounds is not None else settings.BCRYPT_ROUNDS

    def hash(self, plain_password: str) -> str:
        return hash_password(plain_password, rounds=self.rounds)

    def verify(self, plain_password: str, hashed: str) -> bool:
        return verify_password(plain_password, hashed)


def create_access_token(sub: str, role: str) -> str:
    """Create a JWT access token with sub (session id), role snapshot, and exp."""
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "role": role,
        "exp": expire,
        "iat": now,
    }
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.encode(
        payload,
        secret,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, role, exp, iat).
    Raises jwt.PyJWTError on invalid or expired token.
    """
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
    )
