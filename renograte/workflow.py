"""
renograte/workflow.py

Email verification, password reset and password change, built on the token
store and the users table.

Password reset: the token is taken and the password replaced inside one
transaction. If the password write fails the transaction rolls back and the
token is still there for a retry; if it succeeds the token is gone for good.

Email verification: the token is taken and email_verified stamped in one
transaction. Stamping only touches a NULL column, so verifying an address
twice (two links, or a link opened after an admin verified it) changes
nothing and is reported as already verified.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from renograte.db import DbConnection, transaction
from renograte.errors import Conflict, InvalidInput, NotFound
from renograte.mailer import Mailer
from renograte.tokens import (
    TokenKind,
    TokenResult,
    TokenStatus,
    inspect_token,
    issue_token,
    take_token,
)
from renograte.users import (
    MIN_PASSWORD_LENGTH,
    create_user,
    get_user_by_email,
    get_user_by_id,
    mark_email_verified,
    normalize_email,
    set_password,
    verify_password,
)


class VerifyOutcome(str, Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    USER_NOT_FOUND = "user_not_found"
    INVALID = "invalid"
    EXPIRED = "expired"


class ResetOutcome(str, Enum):
    RESET = "reset"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SignupResult:
    user: Dict[str, Any]
    email_sent: bool


def validate_password(password: Optional[str]) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


# ---------------------------------------------------------
# Signup + email verification
# ---------------------------------------------------------
def signup(conn: DbConnection, mailer: Mailer, name: str, email: str, password: str) -> SignupResult:
    """
    Register an unverified user and mail a verification link.

    A failed send does not undo the registration; the user can ask for the
    link again via resend.

    Raises:
        InvalidInput: bad password
        Conflict: email already registered
    """
    validate_password(password)
    email = normalize_email(email)

    try:
        with transaction(conn):
            if get_user_by_email(conn, email):
                raise Conflict("Email already exists")
            user = create_user(conn, name, email, password)
    except (sqlite3.IntegrityError, IntegrityError):
        # Lost a race with a concurrent signup for the same address
        raise Conflict("Email already exists")

    print(f"[SIGNUP] User created: user_id={user['id']}")
    token = issue_token(conn, email, TokenKind.VERIFICATION)
    email_sent = mailer.send_verification_email(email, name, token)
    if not email_sent:
        print(f"[SIGNUP] Verification email failed: user_id={user['id']}")
    return SignupResult(user=user, email_sent=email_sent)


def resend_verification(conn: DbConnection, mailer: Mailer, email: str) -> bool:
    """
    Issue a new verification token (replacing the old one) and mail it.

    Raises:
        NotFound: unknown email
        InvalidInput: email already verified
    """
    user = get_user_by_email(conn, email)
    if not user:
        raise NotFound("User not found")
    if user["email_verified"]:
        raise InvalidInput("Email is already verified")

    token = issue_token(conn, user["email"], TokenKind.VERIFICATION)
    return mailer.send_verification_email(user["email"], user["name"], token)


def verify_email(conn: DbConnection, token: str, now: Optional[datetime] = None) -> VerifyOutcome:
    """Use a verification token and mark its address verified."""
    with transaction(conn):
        result = take_token(conn, token, TokenKind.VERIFICATION, now)
        if result.status == TokenStatus.INVALID:
            return VerifyOutcome.INVALID
        if result.status == TokenStatus.EXPIRED:
            return VerifyOutcome.EXPIRED

        if mark_email_verified(conn, result.email):
            print(f"[VERIFY] Email verified: email={result.email}")
            return VerifyOutcome.VERIFIED

        if get_user_by_email(conn, result.email) is None:
            print(f"[VERIFY] Token for unknown user: email={result.email}")
            return VerifyOutcome.USER_NOT_FOUND

    return VerifyOutcome.ALREADY_VERIFIED


# ---------------------------------------------------------
# Password reset
# ---------------------------------------------------------
def request_password_reset(conn: DbConnection, mailer: Mailer, email: str) -> None:
    """
    Mail a reset link if the address belongs to a user.

    Unknown addresses are silently ignored; the response never reveals
    whether an account exists.
    """
    user = get_user_by_email(conn, email)
    if not user:
        print("[RESET] Reset requested for unknown email")
        return

    token = issue_token(conn, user["email"], TokenKind.RESET)
    if not mailer.send_password_reset_email(user["email"], user["name"], token):
        print(f"[RESET] Reset email failed: user_id={user['id']}")


def check_reset_token(conn: DbConnection, token: str, now: Optional[datetime] = None) -> TokenResult:
    """Validate a reset token for the reset form without using it."""
    return inspect_token(conn, token, TokenKind.RESET, now)


def reset_password(
    conn: DbConnection,
    token: str,
    new_password: str,
    now: Optional[datetime] = None,
) -> ResetOutcome:
    """
    Replace the password of the token's owner and retire the token.

    Raises:
        InvalidInput: bad password (token untouched)
        NotFound: the token's user no longer exists (rolled back, token kept)
    """
    validate_password(new_password)

    with transaction(conn):
        result = take_token(conn, token, TokenKind.RESET, now)
        if result.status == TokenStatus.INVALID:
            return ResetOutcome.INVALID
        if result.status == TokenStatus.EXPIRED:
            return ResetOutcome.EXPIRED

        if not set_password(conn, result.email, new_password):
            raise NotFound("User not found")

    print(f"[RESET] Password reset: email={result.email}")
    return ResetOutcome.RESET


def change_password(conn: DbConnection, user_id: int, current_password: str, new_password: str) -> None:
    """
    Replace the signed-in user's password after checking the current one.

    Raises:
        InvalidInput: new password too short, or current password wrong
        NotFound: the user no longer exists or has no password set
    """
    validate_password(new_password)

    with transaction(conn):
        user = get_user_by_id(conn, user_id)
        if not user or not user["password_hash"]:
            raise NotFound("User not found")
        if not verify_password(current_password, user["password_hash"]):
            print(f"[PASSWORD] Wrong current password: user_id={user_id}")
            raise InvalidInput("Current password is incorrect")
        set_password(conn, user["email"], new_password)

    print(f"[PASSWORD] Password changed: user_id={user_id}")
