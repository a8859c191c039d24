"""
Security utilities for authentication.
JWT token management, password hashing and OTP digests.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

OTP_LENGTH = 6


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    if not plain_password or not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def generate_otp_code(length: int = OTP_LENGTH) -> str:
    """Random numeric code, zero padded."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def hash_otp_code(email: str, code: str, secret_key: Optional[str] = None) -> str:
    """
    Keyed digest of an OTP code.
    Bound to the target email so the same code for two addresses differs.
    """
    key = (secret_key or settings.secret_key).encode()
    message = f"{email.strip().lower()}:{code.strip()}".encode()
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    """
    Create JWT access token.

    data = {"sub": admin_id, "role": role, "sid": session_id}
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        secret_key or settings.secret_key,
        algorithm=settings.algorithm
    )


def decode_token(token: str, secret_key: Optional[str] = None) -> Optional[dict]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(
            token,
            secret_key or settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError:
        return None


def verify_access_token(token: str, secret_key: Optional[str] = None) -> Optional[dict]:
    """Verify access token and return payload."""
    payload = decode_token(token, secret_key)
    if payload and payload.get("type") == "access":
        return payload
    return None


class SessionTokenData:
    """Token payload for an authenticated admin session."""

    def __init__(self, admin_id: int, role: str, session_id: int):
        self.admin_id = admin_id
        self.role = role
        self.session_id = session_id

    def to_dict(self) -> dict:
        """Convert to dictionary for JWT payload."""
        return {
            "sub": str(self.admin_id),
            "role": self.role,
            "sid": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionTokenData":
        return cls(
            admin_id=int(data.get("sub", 0)),
            role=data.get("role", ""),
            session_id=int(data.get("sid", 0)),
        )
