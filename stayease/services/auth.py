"""Authentication primitives: password hashing, JWTs and one-time secrets."""

import hashlib
import hmac
import secrets
import uuid
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from stayease.config import get_settings
from stayease.models.user import User

settings = get_settings()

ACCESS_TOKEN_TYPE = "access"  # noqa: S105
REFRESH_TOKEN_TYPE = "refresh"  # noqa: S105

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """Check an expiry timestamp; a missing expiry counts as expired.

    SQLite hands back naive datetimes, which are stored in UTC.
    """
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at <= (now or utcnow())


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh tokens, reset tokens and OTPs."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, stored_hash: str | None) -> bool:
    """Constant-time comparison of a plaintext secret against a stored hash."""
    if not stored_hash:
        return False
    return hmac.compare_digest(hash_token(token), stored_hash)


def generate_otp() -> str:
    """Six-digit numeric code from a CSPRNG."""
    return str(100000 + secrets.randbelow(900000))


def generate_reset_token() -> str:
    """High-entropy reset token; only its hash is ever persisted."""
    return secrets.token_hex(32)


def create_access_token(user: User) -> str:
    """Create a short-lived JWT access token."""
    now = utcnow()
    to_encode = {
        "sub": str(user.id),
        "role": user.role,
        "email": user.email,
        "type": ACCESS_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(to_encode, settings.access_token_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(user: User) -> str:
    """Create a long-lived JWT refresh token.

    The jti makes every token unique, so a rotation always changes the stored hash.
    """
    now = utcnow()
    to_encode = {
        "sub": str(user.id),
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(days=settings.refresh_token_expire_days),
    }
    return jwt.encode(to_encode, settings.refresh_token_secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, secret: str, token_type: str) -> dict | None:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != token_type or not payload.get("sub"):
        return None
    return payload


def decode_access_token(token: str) -> dict | None:
    """Decode and validate an access token."""
    return _decode(token, settings.access_token_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict | None:
    """Decode and validate a refresh token."""
    return _decode(token, settings.refresh_token_secret, REFRESH_TOKEN_TYPE)
