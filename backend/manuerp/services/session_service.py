# Overview: Service-layer operations for session; resolves the request principal.

"""
Session resolution.

WHY re-read the user on every request: a signed credential stays valid
until it expires, so deactivating or deleting an account would otherwise
take up to 24 hours to bite. One primary-key lookup per request buys
immediate lockout. Do NOT cache the principal across requests.

Resolution steps for an Authorization header value:
1. No bearer token                 -> MissingTokenError (401)
2. Bad signature / wrong purpose   -> InvalidTokenError (401)
   Expired                         -> TokenExpiredError (401)
3. User row gone                   -> UserNotFoundError (401)
4. User.is_active is False         -> AccountDeactivatedError (403)
5. Otherwise                       -> Principal built from the fresh row
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime

from ..extensions import db
from ..errors import MissingTokenError, UserNotFoundError, AccountDeactivatedError
from ..models import User
from . import token_service


@dataclass(frozen=True)
class Principal:
    """Request-scoped identity of the caller. Never stored."""
    id: int
    email: str
    role: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)


def extract_bearer_token(auth_header: str | None) -> str:
    """Return the token from 'Bearer <token>' or raise MissingTokenError."""
    if not auth_header:
        raise MissingTokenError()

    parts = auth_header.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise MissingTokenError()

    return parts[1].strip()


def resolve_principal(auth_header: str | None, *, now: datetime | None = None) -> Principal:
    token = extract_bearer_token(auth_header)

    claims = token_service.verify_token(token, purpose=token_service.SESSION, now=now)

    # Fresh read: role and active flag come from the database, not the token
    user = db.session.get(User, claims.subject_id)
    if user is None:
        raise UserNotFoundError()

    if not user.is_active:
        raise AccountDeactivatedError()

    return Principal(id=user.id, email=user.email, role=user.role, name=user.name)
