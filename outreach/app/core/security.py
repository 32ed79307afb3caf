"""
Password hashing and JWT helpers
"""
from datetime import datetime, timedelta
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from outreach.app.core.config import settings

# bcrypt only uses the first 72 bytes of the password
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT. `data` should carry `sub` (user id as str)."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_oauth_state(user_id: int, purpose: str) -> str:
    """Short-lived signed state for third-party redirects (Gmail consent)."""
    return create_access_token(
        data={"sub": str(user_id), "purpose": purpose},
        expires_delta=timedelta(minutes=settings.oauth_state_expire_minutes),
    )


def decode_oauth_state(state: str, purpose: str) -> Optional[int]:
    """Return the user id carried by a state token, or None if invalid/expired."""
    try:
        payload: dict[str, Any] = jwt.decode(
            state, settings.secret_key, algorithms=[settings.algorithm]
        )
    except JWTError:
        return None
    if payload.get("purpose") != purpose:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def decode_refreshable_token(token: str) -> Optional[int]:
    """
    User id from a session token whose signature is valid, ignoring expiry.
    OAuth state tokens are rejected.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"verify_exp": False},
        )
    except JWTError:
        return None
    if payload.get("purpose"):
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
