"""Credential comparison and session cookie signing."""
from __future__ import annotations

import hmac
import secrets
from datetime import datetime

from jose import JWTError, jwt

from camrelay.core.settings import settings


def secrets_match(expected: str, supplied: str) -> bool:
    """Return True if `supplied` is exactly `expected`.

    The comparison runs in constant time with respect to the content.
    """
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def generate_session_token() -> str:
    """Return a new opaque session identifier."""
    return secrets.token_urlsafe(32)


def encode_session_cookie(token: str, subject: str, expires_at: datetime) -> str:
    """Sign a session identifier into the value stored in the session cookie.

    Args:
        token: Server-side session identifier.
        subject: Username the session is bound to.
        expires_at: Absolute expiry, copied into the `exp` claim.

    Returns:
        Compact JWS string suitable for a cookie value.
    """
    claims: dict[str, object] = {"sub": subject, "sid": token, "exp": expires_at}
    encoded: str = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    return encoded


def decode_session_cookie(value: str) -> str | None:
    """Return the session identifier carried by a cookie, or None if it is invalid."""
    try:
        payload = jwt.decode(value, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    token = payload.get("sid")
    return token if isinstance(token, str) else None
