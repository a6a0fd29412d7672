"""
Security utilities - password hashing, opaque tokens, JWT tokens.
"""
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from .config import settings

# bcrypt only looks at the first 72 bytes of the input
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    """Generate a salted bcrypt hash. Two calls never return the same digest."""
    return bcrypt.hashpw(
        _password_bytes(password),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS),
    ).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError:
        # malformed digest
        return False


def generate_token() -> str:
    """Random opaque token for email verification and password reset."""
    return secrets.token_hex(32)


def _create_token(
    subject: str,
    token_type: str,
    secret: str,
    expires_delta: timedelta,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    to_encode = dict(claims or {})
    now = datetime.now(timezone.utc)
    to_encode.update(
        {
            "sub": str(subject),
            "type": token_type,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + expires_delta,
        }
    )
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: str,
    claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create JWT access token."""
    return _create_token(
        subject,
        "access",
        settings.SECRET_KEY,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        claims,
    )


def create_refresh_token(
    subject: str,
    claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create JWT refresh token."""
    return _create_token(
        subject,
        "refresh",
        settings.REFRESH_SECRET_KEY,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        claims,
    )


def _decode_token(token: str, secret: str, token_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type or not payload.get("sub"):
        return None
    return payload


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate an access token. Returns None if invalid or expired."""
    return _decode_token(token, settings.SECRET_KEY, "access")


def decode_refresh_token(token: str) -> Optional[dict]:
    """Decode and validate a refresh token. Returns None if invalid or expired."""
    return _decode_token(token, settings.REFRESH_SECRET_KEY, "refresh")


def verify_token(token: str) -> Optional[str]:
    """Return the user id carried by a valid access token."""
    payload = decode_access_token(token)
    if payload is None:
        return None
    return payload["sub"]
