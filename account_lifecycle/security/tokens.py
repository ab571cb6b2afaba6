"""Utilities for issuing and validating admin and unsubscribe JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import get_settings

ADMIN_SUBJECT = "admin"
UNSUBSCRIBE_PURPOSE = "unsubscribe"


def issue_admin_token(*, email: str, ttl_seconds: int = 3600) -> str:
    """Create a signed operator token accepted by the admin cleanup endpoints."""
    settings = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": settings.admin_jwt_issuer,
        "sub": ADMIN_SUBJECT,
        "email": email.strip().lower(),
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, settings.admin_jwt_secret, algorithm="HS256")


def decode_admin_token(token: str) -> dict[str, Any]:
    """Decode an operator token and check it belongs to the configured admin.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the signature, expiry or issuer checks fail.
    ValueError
        When the token is valid but not issued to the configured admin.
    """

    settings = get_settings()
    claims = jwt.decode(
        token,
        settings.admin_jwt_secret,
        algorithms=["HS256"],
        issuer=settings.admin_jwt_issuer,
    )
    if claims.get("sub") != ADMIN_SUBJECT:
        raise ValueError("invalid admin token")
    email = str(claims.get("email") or "").strip().lower()
    if not settings.admin_email or email != settings.admin_email:
        raise ValueError("admin not authorized")
    return claims


def issue_unsubscribe_token(*, account_id: str, email: str) -> str:
    """Return a signed token letting the recipient opt out of inactivity emails.

    Returns an empty string when no unsubscribe secret is configured; callers
    omit the link in that case.
    """
    settings = get_settings()
    if not settings.unsubscribe_secret:
        return ""
    now = int(time.time())
    payload: dict[str, Any] = {
        "uid": account_id,
        "email": email,
        "purpose": UNSUBSCRIBE_PURPOSE,
        "iat": now,
        "exp": now + settings.unsubscribe_ttl_days * 24 * 60 * 60,
    }
    return jwt.encode(payload, settings.unsubscribe_secret, algorithm="HS256")


def decode_unsubscribe_token(token: str) -> tuple[str, str]:
    """Verify an unsubscribe token and return ``(account_id, email)``."""
    settings = get_settings()
    if not settings.unsubscribe_secret:
        raise ValueError("unsubscribe is not configured")
    try:
        claims = jwt.decode(token, settings.unsubscribe_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("unsubscribe token expired") from exc
    except jwt.PyJWTError as exc:
        raise ValueError("invalid unsubscribe token") from exc
    account_id = str(claims.get("uid") or "")
    email = str(claims.get("email") or "")
    if claims.get("purpose") != UNSUBSCRIBE_PURPOSE or not account_id or not email:
        raise ValueError("invalid unsubscribe token")
    return account_id, email
