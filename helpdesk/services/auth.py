from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from helpdesk.core.config import settings
from helpdesk.utils.time import utc_now

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthError(Exception):
    pass


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        # Stored value is not a recognised hash; such accounts cannot sign in.
        return False


def create_access_token(account_id: int | str, role: str | None) -> str:
    """Signed session token. ``role`` is informational; the gate re-reads the profile."""
    issued_at = utc_now()
    payload = {
        "sub": str(account_id),
        "typ": ACCESS_TOKEN_TYPE,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise AuthError("Invalid token") from exc


def account_id_from_token(token: str) -> int:
    payload = decode_token(token)
    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        raise AuthError("Invalid token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthError("Invalid token") from exc


def create_refresh_token() -> tuple[str, str]:
    """Return an opaque refresh token and the digest stored in its place."""
    token = secrets.token_urlsafe(48)
    return token, hash_refresh_token(token)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
