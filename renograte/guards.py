"""
renograte/guards.py

Page gate: redirects browser navigation to the right remediation page.

API routes answer denials with JSON (see dependencies.require); page routes
redirect instead, using the reason -> page mapping in authz. Decisions use
the session credential as-is, so a stale credential keeps its old view of
role and verification state until it is refreshed.
"""

from __future__ import annotations

from typing import List, Optional, Tuple
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from renograte.authz import DenyReason, Requirement, authorize
from renograte.config import SESSION_COOKIE_NAME
from renograte.models import Principal
from renograte.session import resolve_credential

# Page prefix -> requirement
PROTECTED_PAGES: List[Tuple[str, Requirement]] = [
    ("/admin", Requirement.ADMIN),
    ("/dashboard", Requirement.EMAIL_VERIFIED),
    ("/account", Requirement.EMAIL_VERIFIED),
    ("/add-listing", Requirement.EMAIL_VERIFIED),
    ("/calculator", Requirement.EMAIL_VERIFIED),
    ("/university", Requirement.EMAIL_VERIFIED),
    ("/directories", Requirement.EMAIL_VERIFIED),
    ("/leads", Requirement.EMAIL_VERIFIED),
    ("/term-sheet", Requirement.EMAIL_VERIFIED),
    ("/distressed", Requirement.EMAIL_VERIFIED),
    ("/contracts", Requirement.EMAIL_VERIFIED),
    ("/perks", Requirement.EMAIL_VERIFIED),
    ("/marketing", Requirement.EMAIL_VERIFIED),
    ("/create-offer", Requirement.EMAIL_VERIFIED),
]

AUTH_PAGES = ("/login", "/signup")


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def page_requirement(path: str) -> Optional[Requirement]:
    for prefix, requirement in PROTECTED_PAGES:
        if _matches(path, prefix):
            return requirement
    return None


def page_redirect(path: str, principal: Optional[Principal]) -> Optional[str]:
    """
    Where to send a browser asking for path, or None to let it through.

    - Signed-in users on /login or /signup go to /admin (admins) or /dashboard
    - Denied requests go to the remediation page for the deny reason; the
      login redirect carries callbackUrl so the user comes back afterwards
    """
    if path.startswith("/api/"):
        return None

    if any(_matches(path, page) for page in AUTH_PAGES):
        if principal is None:
            return None
        return "/admin" if principal.is_admin else "/dashboard"

    requirement = page_requirement(path)
    if requirement is None:
        return None

    decision = authorize(principal, requirement)
    if decision.allowed:
        return None

    target = decision.remediation_path
    if decision.reason == DenyReason.UNAUTHENTICATED:
        target = f"{target}?callbackUrl={quote(path, safe='')}"
    return target


class PageGateMiddleware(BaseHTTPMiddleware):
    """Apply page_redirect to every request before routing."""

    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("authorization", "")
        if auth_header.lower().startswith("bearer "):
            credential = auth_header[7:].strip()
        else:
            credential = request.cookies.get(SESSION_COOKIE_NAME)

        target = page_redirect(request.url.path, resolve_credential(credential))
        if target is not None:
            return RedirectResponse(target, status_code=307)
        return await call_next(request)
