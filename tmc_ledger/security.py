"""
Security utilities: password hashing and JWT access tokens.

1. PASSWORD HASHING (Argon2id via passlib)
   - Passwords are hashed before they touch the database and never logged.
   - CryptContext with deprecated="auto" lets a future scheme take over while
     old hashes keep verifying.

2. JWT TOKENS (python-jose, HS256)
   - The "sub" claim carries the user id; "role" is informational only.
     Authorization always re-reads the role from the database.
   - Tokens expire after ACCESS_TOKEN_EXPIRE_MINUTES.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from tmc_ledger.config import settings


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time check of a password against its stored Argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to encode (must include "sub").
        expires_delta: Optional lifetime; defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        The encoded token string.
    """
    to_encode = data.copy()
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode["exp"] = datetime.now(timezone.utc) + lifetime
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
