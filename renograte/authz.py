"""
renograte/authz.py

Authorization gate: decides allow/deny for a resolved principal.

Single source of truth for the admin, verified-email and active-member checks.
Pure Python logic - no FastAPI imports, no database access. Callers load
whatever state a requirement needs (the MemberProfile) before calling in.

Every denial carries a reason, and each reason has a fixed remediation page.
That mapping is what the UI relies on to send users to login, the
unauthorized page, the verify-email notice or the become-member page.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

from renograte.models import MemberProfile, Principal, UserRole


# ============================================================================
# Requirements and Denial Reasons
# ============================================================================

class Requirement(str, Enum):
    """Capabilities a route or page can demand."""
    ADMIN = "admin"
    EMAIL_VERIFIED = "email_verified"
    ACTIVE_MEMBER = "active_member"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN_ROLE = "forbidden-role"
    EMAIL_UNVERIFIED = "email-unverified"
    MEMBERSHIP_PENDING = "membership-pending"


REMEDIATION_PATHS: Dict[DenyReason, str] = {
    DenyReason.UNAUTHENTICATED: "/login",
    DenyReason.FORBIDDEN_ROLE: "/unauthorized",
    DenyReason.EMAIL_UNVERIFIED: "/verify-email-notice",
    DenyReason.MEMBERSHIP_PENDING: "/become-member",
}

DENY_MESSAGES: Dict[DenyReason, str] = {
    DenyReason.UNAUTHENTICATED: "Not authenticated",
    DenyReason.FORBIDDEN_ROLE: "Not authorized",
    DenyReason.EMAIL_UNVERIFIED: "Email address not verified",
    DenyReason.MEMBERSHIP_PENDING: "Active membership required",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @property
    def status_code(self) -> int:
        """HTTP status for a denial: 401 when unauthenticated, 403 otherwise."""
        if self.allowed:
            return 200
        return 401 if self.reason == DenyReason.UNAUTHENTICATED else 403

    @property
    def remediation_path(self) -> Optional[str]:
        return REMEDIATION_PATHS.get(self.reason) if self.reason else None

    @property
    def message(self) -> str:
        return DENY_MESSAGES.get(self.reason, "") if self.reason else ""


ALLOW = Decision(True)


def deny(reason: DenyReason) -> Decision:
    return Decision(False, reason)


# ============================================================================
# Main Decision Function
# ============================================================================

def authorize(
    principal: Optional[Principal],
    requirement: Requirement,
    member_profile: Optional[MemberProfile] = None,
) -> Decision:
    """
    Decide whether principal satisfies requirement.

    Args:
        principal: Resolved principal, or None for an unauthenticated request
        requirement: The capability being asked for
        member_profile: The principal's MemberProfile; None when the user has
            never applied, which is treated as not-yet-a-member, not an error

    Returns:
        ALLOW, or a Decision carrying the DenyReason
    """
    if principal is None:
        return deny(DenyReason.UNAUTHENTICATED)

    if requirement == Requirement.ADMIN:
        if principal.role != UserRole.admin:
            return deny(DenyReason.FORBIDDEN_ROLE)
        return ALLOW

    if requirement == Requirement.EMAIL_VERIFIED:
        if not principal.is_email_verified:
            return deny(DenyReason.EMAIL_UNVERIFIED)
        return ALLOW

    if requirement == Requirement.ACTIVE_MEMBER:
        if member_profile is None or not member_profile.is_active:
            return deny(DenyReason.MEMBERSHIP_PENDING)
        return ALLOW

    raise ValueError(f"Unknown requirement: {requirement!r}")


def authorize_all(
    principal: Optional[Principal],
    requirements: Iterable[Requirement],
    member_profile: Optional[MemberProfile] = None,
) -> Decision:
    """Check requirements in order and return the first denial, or ALLOW."""
    if principal is None:
        return deny(DenyReason.UNAUTHENTICATED)

    for requirement in requirements:
        decision = authorize(principal, requirement, member_profile)
        if not decision.allowed:
            return decision
    return ALLOW
