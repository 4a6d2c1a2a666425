"""
renograte/tokens.py

Single-use, time-bounded opaque tokens for password reset and email
verification.

Lifecycle per token: Issued -> Consumed (row removed) or Expired (row removed).
There is no way back to Issued.

Consumption is one conditional DELETE ... RETURNING statement, so two
concurrent consumers of the same token cannot both see it: the database
hands the row to exactly one of them. Invalid and expired tokens are ordinary
results (TokenStatus), not exceptions.

The token column holds the SHA-256 of each token; the raw value exists only
in the link mailed to the user.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from renograte.config import IS_DEV, RESET_TOKEN_MINUTES, VERIFICATION_TOKEN_HOURS
from renograte.db import DbConnection, execute_query, fetch_one, transaction


class TokenKind(str, Enum):
    RESET = "reset"
    VERIFICATION = "verification"

    @property
    def table(self) -> str:
        return _TABLES[self]

    @property
    def ttl(self) -> timedelta:
        return _TTLS[self]


_TABLES = {
    TokenKind.RESET: "password_reset_tokens",
    TokenKind.VERIFICATION: "verification_tokens",
}

_TTLS = {
    TokenKind.RESET: timedelta(minutes=RESET_TOKEN_MINUTES),
    TokenKind.VERIFICATION: timedelta(hours=VERIFICATION_TOKEN_HOURS),
}


class TokenStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenResult:
    status: TokenStatus
    email: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == TokenStatus.VALID


INVALID = TokenResult(TokenStatus.INVALID)
EXPIRED = TokenResult(TokenStatus.EXPIRED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_token() -> str:
    """32 random bytes, hex encoded (never logged)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash a token for storage (SHA-256). Only the emailed link holds the raw value."""
    return hashlib.sha256(token.encode()).hexdigest()


def _aware(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _stamp(value: datetime) -> str:
    # Fixed-width so stored values also sort correctly as text
    return _aware(value).isoformat(timespec="microseconds")


def _is_expired(expires: str, now: datetime) -> bool:
    return _aware(now) > _aware(datetime.fromisoformat(expires))


def issue_token(
    conn: DbConnection,
    email: str,
    kind: TokenKind,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a fresh token for email, replacing any earlier token of the same kind.

    Returns the token string; only its holder (the email recipient) can use it.
    """
    now = now or utcnow()
    token = generate_token()
    expires = now + kind.ttl

    with transaction(conn):
        execute_query(
            conn,
            f"DELETE FROM {kind.table} WHERE identifier = :identifier",
            {"identifier": email},
        )
        execute_query(
            conn,
            f"INSERT INTO {kind.table} (token, identifier, expires) VALUES (:token, :identifier, :expires)",
            {"token": hash_token(token), "identifier": email, "expires": _stamp(expires)},
        )

    if IS_DEV:
        print(f"[TOKENS] Issued {kind.value} token: email={email}, expires={_stamp(expires)}")
    return token


def take_token(
    conn: DbConnection,
    token: str,
    kind: TokenKind,
    now: Optional[datetime] = None,
) -> TokenResult:
    """
    Remove the token and report what it was.

    Must run inside the caller's transaction(): the delete becomes permanent
    only when that transaction commits, so a caller whose follow-up write
    fails rolls back and leaves the token usable.
    """
    now = now or utcnow()
    row = fetch_one(
        conn,
        f"DELETE FROM {kind.table} WHERE token = :token RETURNING identifier, expires",
        {"token": hash_token(token)},
    )

    if not row:
        return INVALID

    if _is_expired(row["expires"], now):
        print(f"[TOKENS] Expired {kind.value} token rejected: email={row['identifier']}")
        return EXPIRED

    return TokenResult(TokenStatus.VALID, row["identifier"])


def consume_token(
    conn: DbConnection,
    token: str,
    kind: TokenKind,
    now: Optional[datetime] = None,
) -> TokenResult:
    """Take a token in its own committed transaction."""
    with transaction(conn):
        return take_token(conn, token, kind, now)


def inspect_token(
    conn: DbConnection,
    token: str,
    kind: TokenKind,
    now: Optional[datetime] = None,
) -> TokenResult:
    """
    Check a token without using it up.

    Expired tokens are still deleted on sight.
    """
    now = now or utcnow()
    row = fetch_one(
        conn,
        f"SELECT identifier, expires FROM {kind.table} WHERE token = :token",
        {"token": hash_token(token)},
    )

    if not row:
        return INVALID

    if _is_expired(row["expires"], now):
        with transaction(conn):
            execute_query(conn, f"DELETE FROM {kind.table} WHERE token = :token", {"token": hash_token(token)})
        print(f"[TOKENS] Expired {kind.value} token removed on inspection: email={row['identifier']}")
        return EXPIRED

    return TokenResult(TokenStatus.VALID, row["identifier"])


def purge_expired_tokens(conn: DbConnection, now: Optional[datetime] = None) -> int:
    """Delete every expired token of every kind; returns the number removed."""
    now = now or utcnow()
    removed = 0
    with transaction(conn):
        for kind in TokenKind:
            result = execute_query(
                conn,
                f"DELETE FROM {kind.table} WHERE expires < :now",
                {"now": _stamp(now)},
            )
            removed += max(result.rowcount, 0)
    return removed
