"""Admin capabilities.

An admin capability is proven by one of two possessions, checked in order:
the shared management secret in ``X-Admin-Secret``, then a signed session
token in the ``admin_auth`` cookie. Session tokens are HS256 JWTs verified
against the current secret and then the previous one, and are rejected when
their ``ver`` claim no longer matches ``AUTH_TOKEN_VERSION``.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from backend.app.core.config import Settings

SESSION_COOKIE = "admin_auth"
SECRET_HEADER = "x-admin-secret"
JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AdminIdentity:
    username: str
    restaurant_slug: str | None
    via: str  # "secret" or "session"


def sign_token(settings: Settings, *, username: str, restaurant_slug: str | None, subject: str = "admin") -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": subject,
        "username": username,
        "ver": settings.AUTH_TOKEN_VERSION,
        "iat": now,
        "exp": now + timedelta(seconds=settings.AUTH_TOKEN_TTL_SECONDS),
    }
    if restaurant_slug:
        claims["restaurant"] = restaurant_slug
    return jwt.encode(claims, settings.auth_secret, algorithm=JWT_ALGORITHM)


def verify_token(settings: Settings, token: str) -> dict | None:
    for secret in (settings.auth_secret, settings.AUTH_SECRET_PREV):
        if not secret:
            continue
        try:
            payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            continue
        if payload.get("ver") != settings.AUTH_TOKEN_VERSION:
            continue
        return payload
    return None


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def identity_from_secret(settings: Settings, header_value: str | None) -> AdminIdentity | None:
    expected = settings.ADMIN_MANAGEMENT_SECRET
    if not expected or not header_value:
        return None
    if not hmac.compare_digest(expected.encode("utf-8"), header_value.encode("utf-8")):
        return None
    return AdminIdentity(username="management", restaurant_slug=None, via="secret")


def identity_from_session(settings: Settings, token: str | None) -> AdminIdentity | None:
    if not token:
        return None
    payload = verify_token(settings, token)
    if payload is None:
        return None
    return AdminIdentity(
        username=str(payload.get("username", "")),
        restaurant_slug=payload.get("restaurant"),
        via="session",
    )


def resolve_admin(settings: Settings, *, secret_header: str | None, session_token: str | None) -> AdminIdentity | None:
    return identity_from_secret(settings, secret_header) or identity_from_session(settings, session_token)
