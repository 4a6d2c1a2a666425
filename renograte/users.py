"""
renograte/users.py

User records: lookup, creation, password and role changes, email verification.

All functions take an open connection and leave transaction control to the
caller, so several of them can be composed into one atomic unit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from renograte.db import DbConnection, execute_query, fetch_one
from renograte.models import Principal, UserRole, principal_from_row

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 8

_USER_COLUMNS = "id, name, email, password_hash, role, email_verified, created_at"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized hash format
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_user_by_id(conn: DbConnection, user_id: int) -> Optional[Dict[str, Any]]:
    return fetch_one(
        conn,
        f"SELECT {_USER_COLUMNS} FROM users WHERE id = :id",
        {"id": user_id},
    )


def get_user_by_email(conn: DbConnection, email: str) -> Optional[Dict[str, Any]]:
    return fetch_one(
        conn,
        f"SELECT {_USER_COLUMNS} FROM users WHERE email = :email",
        {"email": normalize_email(email)},
    )


def load_principal(conn: DbConnection, user_id: int) -> Optional[Principal]:
    """Current Principal state from the users table, or None if the user is gone."""
    row = get_user_by_id(conn, user_id)
    if not row:
        return None
    return principal_from_row(row)


def create_user(
    conn: DbConnection,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.user,
) -> Dict[str, Any]:
    """Insert a new, unverified user. Duplicate emails surface as the driver's IntegrityError."""
    return fetch_one(
        conn,
        f"""
        INSERT INTO users (name, email, password_hash, role, email_verified, created_at)
        VALUES (:name, :email, :password_hash, :role, NULL, :created_at)
        RETURNING {_USER_COLUMNS}
        """,
        {
            "name": name,
            "email": normalize_email(email),
            "password_hash": hash_password(password),
            "role": role.value,
            "created_at": now_iso(),
        },
    )


def set_password(conn: DbConnection, email: str, password: str) -> bool:
    """Replace the password hash; returns False when no user has that email."""
    result = execute_query(
        conn,
        "UPDATE users SET password_hash = :password_hash WHERE email = :email",
        {"password_hash": hash_password(password), "email": normalize_email(email)},
    )
    return result.rowcount > 0


def mark_email_verified(conn: DbConnection, email: str) -> bool:
    """
    Stamp email_verified if it is still unset.

    Returns True only for the call that actually set it, so repeated
    verification leaves the original timestamp untouched.
    """
    result = execute_query(
        conn,
        """
        UPDATE users SET email_verified = :verified_at
        WHERE email = :email AND email_verified IS NULL
        """,
        {"verified_at": now_iso(), "email": normalize_email(email)},
    )
    return result.rowcount > 0


def set_role(conn: DbConnection, user_id: int, role: UserRole) -> bool:
    result = execute_query(
        conn,
        "UPDATE users SET role = :role WHERE id = :id",
        {"role": role.value, "id": user_id},
    )
    return result.rowcount > 0
