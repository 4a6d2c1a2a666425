"""
renograte/models.py

Domain types for the authorization core: roles, membership state, the
resolved Principal and the MemberProfile read by the authorization gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from renograte.errors import InternalError


# Enums
class UserRole(str, Enum):
    user = "user"
    admin = "admin"
    member = "member"
    agent = "agent"
    contractor = "contractor"


class MemberStatus(str, Enum):
    pending = "pending"
    active = "active"
    rejected = "rejected"
    inactive = "inactive"


def decode_role(value: Any) -> UserRole:
    """
    Decode a stored role string into the closed UserRole set.

    An unknown value means the data layer holds something this service does
    not understand; that is a server fault, never a silent allow or deny.
    """
    try:
        return UserRole(value)
    except ValueError:
        print(f"[AUTH] Unknown role in user record: {value!r}")
        raise InternalError()


class Principal(BaseModel):
    """
    The authenticated identity attached to a request.

    Built either from a session credential (a snapshot taken at issue time)
    or from the users table (current state).
    """
    id: int
    email: str
    role: UserRole = UserRole.user
    email_verified: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified is not None


def principal_from_row(row: Dict[str, Any]) -> Principal:
    """Build a Principal from a users row (raises InternalError on unknown role)."""
    return Principal(
        id=row["id"],
        email=row["email"],
        role=decode_role(row["role"] or UserRole.user.value),
        email_verified=row.get("email_verified"),
    )


@dataclass
class MemberProfile:
    """
    Membership application state for a user (1:1 with users).

    Read-only to the authorization gate; mutated by member registration and
    admin review.
    """
    user_id: int
    status: MemberStatus
    is_early_access: bool = False
    admin_feedback: Optional[str] = None
    plan: Optional[str] = None
    billing_cycle: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.active

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MemberProfile":
        try:
            status = MemberStatus(row["status"])
        except ValueError:
            print(f"[AUTH] Unknown member status for user_id={row['user_id']}: {row['status']!r}")
            raise InternalError()
        return cls(
            user_id=row["user_id"],
            status=status,
            is_early_access=bool(row.get("is_early_access")),
            admin_feedback=row.get("admin_feedback"),
            plan=row.get("plan"),
            billing_cycle=row.get("billing_cycle"),
        )
