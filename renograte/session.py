"""
renograte/session.py

Session credentials and their resolution into a Principal.

A credential is an HS256 JWT carrying a snapshot of the user's id, email,
role and email-verification stamp. It is a cache of the users row, not a
source of truth: after a role change or email verification the client must
call refresh (see refresh_credential) to get a credential that reflects the
new state.

Contains:
- issue_credential / resolve_credential: encode and decode credentials
- refresh_credential: re-derive a credential from current user state
- get_principal / require_principal: FastAPI dependencies

resolve_credential never raises. Malformed, tampered, expired or otherwise
unusable credentials all resolve to None, the same as no credential at all.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from renograte.config import (
    ALGORITHM,
    IS_DEV,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE_DAYS,
)
from renograte.db import DbConnection
from renograte.errors import Unauthenticated
from renograte.models import Principal
from renograte.users import load_principal

# Bearer header is optional; the cookie is the fallback transport
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# Credential encoding
# ---------------------------------------------------------
def issue_credential(principal: Principal, now: Optional[datetime] = None) -> str:
    """Sign a credential for the principal's current fields."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(principal.id),
        "email": principal.email,
        "role": principal.role.value,
        "email_verified": principal.email_verified,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=SESSION_MAX_AGE_DAYS)).timestamp()),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def resolve_credential(credential: Optional[str]) -> Optional[Principal]:
    """
    Decode a credential into the Principal it snapshots.

    Returns None for a missing, malformed, tampered or expired credential, and
    for one whose payload does not describe a valid principal.
    """
    if not credential:
        return None

    try:
        payload = jwt.decode(
            credential,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "role", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        if IS_DEV:
            print("[AUTH] Credential expired")
        return None
    except jwt.InvalidTokenError:
        if IS_DEV:
            print("[AUTH] Credential rejected: invalid signature or format")
        return None

    try:
        return Principal(
            id=int(payload["sub"]),
            email=payload.get("email") or "",
            role=payload["role"],
            email_verified=payload.get("email_verified"),
        )
    except (TypeError, ValueError, ValidationError):
        # Unknown role, non-numeric subject and the like
        print("[AUTH] Credential rejected: payload does not describe a principal")
        return None


def refresh_credential(conn: DbConnection, user_id: int) -> Tuple[str, Principal]:
    """
    Re-derive a credential from the users table.

    This is the invalidation point for stale snapshots: call it after any
    change to a user's role or verification state.

    Raises:
        Unauthenticated: the user no longer exists
    """
    principal = load_principal(conn, user_id)
    if principal is None:
        print(f"[AUTH] Refresh for missing user: user_id={user_id}")
        raise Unauthenticated("User not found")

    credential = issue_credential(principal)
    if IS_DEV:
        print(f"[AUTH] Credential refreshed: user_id={principal.id}, role={principal.role.value}, "
              f"email_verified={principal.is_email_verified}")
    return credential, principal


# ---------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------
def read_credential(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Raw credential from the Authorization header, else the session cookie."""
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_principal(credential: Optional[str] = Depends(read_credential)) -> Optional[Principal]:
    """
    Resolve the request's principal, or None.

    Handlers receive the result as an explicit argument; there is no ambient
    current-user state.
    """
    return resolve_credential(credential)


def require_principal(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    """
    Like get_principal, but rejects unauthenticated requests.

    Raises:
        Unauthenticated (401)
    """
    if principal is None:
        raise Unauthenticated()
    return principal
