"""
renograte/errors.py

Application error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe to
show the client. Route handlers raise these; the handlers registered in
renograte.main turn them into {"error": message} responses.

Expected token outcomes (invalid/expired) are NOT raised inside the token
store; they are return values that routes translate into InvalidInput or
ExpiredToken at the boundary.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for errors with a fixed HTTP mapping."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(AppError):
    """Valid credential, insufficient role or status."""

    status_code = 403
    default_message = "Not authorized"

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class InvalidInput(AppError):
    status_code = 400
    default_message = "Invalid input"


class ExpiredToken(AppError):
    """Distinct from InvalidInput so the UI can offer a fresh link."""

    status_code = 400
    default_message = "Token has expired"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Already exists"


class InternalError(AppError):
    """Unexpected failure. The message is generic; details go to the server log."""

    status_code = 500
    default_message = "Internal server error"
