# Overview: Service-layer operations for signed credentials (issue / verify).

"""
Signed credential codec.

WHY JWT (HS256): the credential is self-describing (subject, email, role,
issued-at, expiry) and tamper-evident with a server-held secret, so no
token table is needed. Revocation is handled by session_service re-reading
the user on every request, not by a blacklist.

Every token carries a purpose ("typ") claim. verify_token() is told which
purpose it expects, so a password-reset link can never be presented as a
session credential and vice versa.

Expiry semantics: a token is valid iff now < exp (second resolution).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from ..errors import InvalidTokenError, TokenExpiredError


SESSION = "session"
PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"

_TTL_CONFIG_KEYS = {
    SESSION: "SESSION_TOKEN_TTL",
    PASSWORD_RESET: "PASSWORD_RESET_TOKEN_TTL",
    EMAIL_VERIFICATION: "EMAIL_VERIFICATION_TOKEN_TTL",
}


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    email: str | None
    role: str | None
    purpose: str
    issued_at: datetime
    expires_at: datetime


def _secret() -> str:
    return current_app.config["JWT_SECRET"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def default_ttl(purpose: str) -> timedelta:
    return current_app.config[_TTL_CONFIG_KEYS[purpose]]


def issue_token(
    *,
    subject_id: int,
    email: str | None = None,
    role: str | None = None,
    purpose: str = SESSION,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    """
    Sign a credential for subject_id.

    Pure function of its inputs and the configured secret: no database
    access, nothing recorded server-side.
    """
    if purpose not in _TTL_CONFIG_KEYS:
        raise ValueError(f"unknown token purpose: {purpose}")

    issued_at = int(_now(now).timestamp())
    lifetime = ttl if ttl is not None else default_ttl(purpose)

    payload = {
        "sub": str(subject_id),
        "typ": purpose,
        "iat": issued_at,
        "exp": issued_at + int(lifetime.total_seconds()),
    }
    if email is not None:
        payload["email"] = email
    if role is not None:
        payload["role"] = role

    return jwt.encode(payload, _secret(), algorithm=_algorithm())


def verify_token(
    token: str,
    *,
    purpose: str = SESSION,
    now: datetime | None = None,
) -> TokenClaims:
    """
    Verify signature, purpose and expiry; return the embedded claims.

    Raises InvalidTokenError if the token is malformed, tampered with or
    issued for another purpose, and TokenExpiredError once now >= exp.
    """
    if not token:
        raise InvalidTokenError()

    try:
        # Expiry is checked below against the caller's clock
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"verify_exp": False, "verify_iat": False, "require": ["sub", "exp", "iat", "typ"]},
        )
    except jwt.InvalidTokenError:
        raise InvalidTokenError()

    if payload.get("typ") != purpose:
        raise InvalidTokenError()

    try:
        subject_id = int(payload["sub"])
        issued_at = int(payload["iat"])
        expires_at = int(payload["exp"])
    except (TypeError, ValueError):
        raise InvalidTokenError()

    if int(_now(now).timestamp()) >= expires_at:
        raise TokenExpiredError()

    return TokenClaims(
        subject_id=subject_id,
        email=payload.get("email"),
        role=payload.get("role"),
        purpose=purpose,
        issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
    )


def issue_session_token(user) -> str:
    return issue_token(subject_id=user.id, email=user.email, role=user.role, purpose=SESSION)
