"""
renograte/routes_auth.py

Authentication endpoints: signup/login, session checks and refresh, email
verification and password reset.

Security guarantees:
- The principal comes from the session credential only (never the body)
- /auth/admin re-reads the role from the database; the credential may be stale
- Token failures distinguish "invalid" from "expired" so the UI can offer a
  new link rather than asking the user to re-check it
- forgot-password answers identically whether or not the email exists
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from renograte.authz import Requirement, authorize
from renograte.config import IS_PROD, SESSION_COOKIE_NAME, SESSION_MAX_AGE_DAYS
from renograte.db import DbConnection, get_db
from renograte.errors import (
    ExpiredToken,
    Forbidden,
    InternalError,
    InvalidInput,
    NotFound,
    Unauthenticated,
)
from renograte.mailer import Mailer, get_mailer
from renograte.models import Principal, principal_from_row
from renograte.schemas import EmailRequest, LoginRequest, ResetPasswordRequest, SignupRequest
from renograte.session import issue_credential, refresh_credential, require_principal
from renograte.tokens import TokenStatus
from renograte.users import get_user_by_email, load_principal, verify_password
from renograte.workflow import (
    ResetOutcome,
    VerifyOutcome,
    check_reset_token,
    request_password_reset,
    resend_verification,
    reset_password,
    signup,
    verify_email,
)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    """User fields safe to return to the client (no password hash)."""
    return {
        "id": row["id"],
        "name": row.get("name"),
        "email": row["email"],
        "role": row["role"],
        "emailVerified": row.get("email_verified"),
    }


def _with_session_cookie(response: JSONResponse, credential: str) -> JSONResponse:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        credential,
        max_age=SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=IS_PROD,
        samesite="lax",
    )
    return response


def _require_token(token: Optional[str], message: str) -> str:
    if not token or not token.strip():
        raise InvalidInput(message)
    return token.strip()


# ---------------------------------------------------------
# Signup / login / logout
# ---------------------------------------------------------
@router.post("/signup", status_code=201)
def signup_user(
    req: SignupRequest,
    conn: DbConnection = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Dict[str, Any]:
    """
    Register a new user and send the verification email.

    Raises:
        InvalidInput (400): bad name, email or password
        Conflict (409): email already registered
    """
    result = signup(conn, mailer, req.name, req.email, req.password)

    if not result.email_sent:
        message = "User created successfully, but verification email failed to send. Please contact support."
    else:
        message = "User created successfully. Please check your email to verify your account."

    return {
        "message": message,
        "user": _public_user(result.user),
        "redirect": "/verify-email-notice",
    }


@router.post("/login")
def login(req: LoginRequest, conn: DbConnection = Depends(get_db)) -> JSONResponse:
    """Check email/password and issue a session credential (body + cookie)."""
    row = get_user_by_email(conn, req.email)

    if not row or not verify_password(req.password, row["password_hash"]):
        print("[LOGIN] Invalid credentials")
        raise Unauthenticated("Invalid credentials")

    principal = principal_from_row(row)
    credential = issue_credential(principal)
    print(f"[LOGIN] Session issued: user_id={principal.id}, role={principal.role.value}")

    response = JSONResponse({"accessToken": credential, "user": _public_user(row)})
    return _with_session_cookie(response, credential)


@router.post("/logout")
def logout() -> JSONResponse:
    """Drop the session cookie (idempotent). Header credentials simply expire."""
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


# ---------------------------------------------------------
# Session checks
# ---------------------------------------------------------
@router.get("/admin")
def admin_check(
    principal: Principal = Depends(require_principal),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, bool]:
    """
    Confirm the caller is an admin, using the role stored now rather than
    the one cached in the credential.

    Raises:
        Unauthenticated (401): no session
        Forbidden (403): not an admin (or the user no longer exists)
    """
    current = load_principal(conn, principal.id)
    decision = authorize(current, Requirement.ADMIN)

    if not decision.allowed:
        print(f"[AUTHZ] Admin check failed: user_id={principal.id}")
        raise Forbidden("Not authorized", reason=(decision.reason.value if current else None))

    return {"isAdmin": True}


@router.api_route("/refresh-session", methods=["GET", "POST"])
def refresh_session(
    principal: Principal = Depends(require_principal),
    conn: DbConnection = Depends(get_db),
) -> JSONResponse:
    """
    Re-issue the caller's credential from current user state.

    Clients call this after anything that changes their role or verification
    state (upgrade, email verification, admin promotion).
    """
    credential, current = refresh_credential(conn, principal.id)
    response = JSONResponse({
        "success": True,
        "message": "Session refreshed",
        "userId": current.id,
        "role": current.role.value,
        "accessToken": credential,
    })
    return _with_session_cookie(response, credential)


# ---------------------------------------------------------
# Email verification
# ---------------------------------------------------------
@router.get("/verify-email")
def verify_email_route(
    token: Optional[str] = Query(None),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, str]:
    token = _require_token(token, "Verification token is required")
    outcome = verify_email(conn, token)

    if outcome == VerifyOutcome.INVALID:
        raise InvalidInput("Invalid verification token")
    if outcome == VerifyOutcome.EXPIRED:
        raise ExpiredToken("Verification link has expired")
    if outcome == VerifyOutcome.USER_NOT_FOUND:
        raise NotFound("User not found")
    if outcome == VerifyOutcome.ALREADY_VERIFIED:
        return {"message": "Email already verified"}
    return {"message": "Email verified successfully"}


@router.post("/resend-verification")
def resend_verification_route(
    req: EmailRequest,
    conn: DbConnection = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Dict[str, str]:
    if not resend_verification(conn, mailer, req.email):
        raise InternalError("Failed to send verification email. Please try again later.")
    return {"message": "Verification email sent successfully. Please check your email."}


# ---------------------------------------------------------
# Password reset
# ---------------------------------------------------------
@router.post("/forgot-password")
def forgot_password(
    req: EmailRequest,
    conn: DbConnection = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Dict[str, Any]:
    request_password_reset(conn, mailer, req.email)
    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.get("/verify-reset-token")
def verify_reset_token(
    token: Optional[str] = Query(None),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    token = _require_token(token, "Token is required")
    result = check_reset_token(conn, token)

    if result.status == TokenStatus.INVALID:
        raise InvalidInput("Invalid token")
    if result.status == TokenStatus.EXPIRED:
        raise ExpiredToken("Token has expired")
    return {"valid": True, "email": result.email}


@router.post("/reset-password")
def reset_password_route(
    req: ResetPasswordRequest,
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    outcome = reset_password(conn, req.token, req.password)

    if outcome == ResetOutcome.INVALID:
        raise InvalidInput("Invalid token")
    if outcome == ResetOutcome.EXPIRED:
        raise ExpiredToken("Token has expired")
    return {"success": True, "message": "Password has been reset successfully"}
