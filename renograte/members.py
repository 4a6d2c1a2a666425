"""
renograte/members.py

Membership profiles: application, admin review, activation on upgrade.

A user without a member_profiles row simply has no membership; every read
path here treats that as status=None / is_early_access=False, never as an
error.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from renograte.config import IS_DEV
from renograte.db import DbConnection, execute_query, fetch_one, transaction
from renograte.errors import Conflict, Forbidden, InvalidInput, NotFound
from renograte.models import MemberProfile, MemberStatus, Principal, UserRole
from renograte.users import get_user_by_id, now_iso, set_role

_PROFILE_COLUMNS = (
    "user_id, status, is_early_access, admin_feedback, plan, billing_cycle"
)


def get_member_profile(conn: DbConnection, user_id: int) -> Optional[MemberProfile]:
    row = fetch_one(
        conn,
        f"SELECT {_PROFILE_COLUMNS} FROM member_profiles WHERE user_id = :user_id",
        {"user_id": user_id},
    )
    if not row:
        return None
    return MemberProfile.from_row(row)


def member_status_payload(profile: Optional[MemberProfile]) -> Dict[str, Any]:
    """Response body for the member-status endpoint."""
    if profile is None:
        return {"status": None, "isEarlyAccess": False, "adminFeedback": None}
    return {
        "status": profile.status.value,
        "isEarlyAccess": profile.is_early_access,
        "adminFeedback": profile.admin_feedback,
    }


def apply_for_membership(
    conn: DbConnection,
    user_id: int,
    *,
    plan: str,
    billing_cycle: str,
    phone: str,
    business_type: str,
    company: Optional[str] = None,
    license_number: Optional[str] = None,
    is_early_access: bool = False,
) -> MemberProfile:
    """
    Create a pending profile for user_id.

    Raises:
        Conflict: the user already has a profile
    """
    with transaction(conn):
        if get_member_profile(conn, user_id) is not None:
            raise Conflict("Membership application already exists")

        now = now_iso()
        execute_query(
            conn,
            """
            INSERT INTO member_profiles (
                user_id, status, is_early_access, company, phone, business_type,
                license_number, plan, billing_cycle, created_at, updated_at
            ) VALUES (
                :user_id, :status, :is_early_access, :company, :phone, :business_type,
                :license_number, :plan, :billing_cycle, :now, :now
            )
            """,
            {
                "user_id": user_id,
                "status": MemberStatus.pending.value,
                "is_early_access": is_early_access,
                "company": company,
                "phone": phone,
                "business_type": business_type,
                "license_number": license_number,
                "plan": plan,
                "billing_cycle": billing_cycle,
                "now": now,
            },
        )

    print(f"[MEMBER] Application created: user_id={user_id}, plan={plan}, billing_cycle={billing_cycle}")
    return MemberProfile(
        user_id=user_id,
        status=MemberStatus.pending,
        is_early_access=is_early_access,
        plan=plan,
        billing_cycle=billing_cycle,
    )


def review_membership(
    conn: DbConnection,
    user_id: int,
    status: MemberStatus,
    admin_feedback: Optional[str] = None,
) -> MemberProfile:
    """
    Admin decision on an application.

    Raises:
        NotFound: the user has no profile
    """
    with transaction(conn):
        result = execute_query(
            conn,
            """
            UPDATE member_profiles
            SET status = :status, admin_feedback = :admin_feedback, updated_at = :now
            WHERE user_id = :user_id
            """,
            {
                "status": status.value,
                "admin_feedback": admin_feedback,
                "now": now_iso(),
                "user_id": user_id,
            },
        )
        if result.rowcount == 0:
            raise NotFound("Member profile not found")
        profile = get_member_profile(conn, user_id)

    print(f"[ADMIN] Member review: user_id={user_id}, status={status.value}")
    return profile


def infer_role(requested_role: str, plan_type: Optional[str]) -> UserRole:
    """
    Role implied by a plan purchase.

    Agent plans make agents, service-provider/contractor plans make
    contractors; otherwise the requested role applies.
    """
    plan = (plan_type or "").lower()
    if "agent" in plan:
        return UserRole.agent
    if "service provider" in plan or "contractor" in plan:
        return UserRole.contractor

    try:
        return UserRole(requested_role)
    except ValueError:
        raise InvalidInput(f"Invalid role. Valid options: {[r.value for r in UserRole]}")


def update_member_role(
    conn: DbConnection,
    actor: Principal,
    user_id: int,
    requested_role: str,
    plan_type: Optional[str] = None,
    billing_cycle: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Change a user's role and activate their membership in one transaction.

    Users may only update themselves; admins may update anyone. Only admins
    can grant the admin role. The target's session credential is stale
    afterwards and must be refreshed.

    Raises:
        Forbidden: actor may not perform this update
        InvalidInput: unknown role
        NotFound: no such user
    """
    role = infer_role(requested_role, plan_type)

    if actor.id != user_id and not actor.is_admin:
        print(f"[AUTHZ] Role update denied: actor={actor.id}, target={user_id}")
        raise Forbidden("Forbidden", reason="forbidden-role")
    if role == UserRole.admin and not actor.is_admin:
        print(f"[AUTHZ] Admin grant denied: actor={actor.id}, target={user_id}")
        raise Forbidden("Forbidden", reason="forbidden-role")

    with transaction(conn):
        user = get_user_by_id(conn, user_id)
        if not user:
            raise NotFound("User not found")

        set_role(conn, user_id, role)

        now = now_iso()
        if get_member_profile(conn, user_id) is not None:
            execute_query(
                conn,
                """
                UPDATE member_profiles
                SET status = :status,
                    plan = COALESCE(:plan, plan),
                    billing_cycle = COALESCE(:billing_cycle, billing_cycle),
                    updated_at = :now
                WHERE user_id = :user_id
                """,
                {
                    "status": MemberStatus.active.value,
                    "plan": plan_type,
                    "billing_cycle": billing_cycle,
                    "now": now,
                    "user_id": user_id,
                },
            )
        elif plan_type and billing_cycle:
            execute_query(
                conn,
                """
                INSERT INTO member_profiles (
                    user_id, status, is_early_access, phone, business_type,
                    plan, billing_cycle, created_at, updated_at
                ) VALUES (
                    :user_id, :status, :is_early_access, '', 'Other',
                    :plan, :billing_cycle, :now, :now
                )
                """,
                {
                    "user_id": user_id,
                    "status": MemberStatus.active.value,
                    "is_early_access": False,
                    "plan": plan_type,
                    "billing_cycle": billing_cycle,
                    "now": now,
                },
            )

    if IS_DEV:
        print(f"[MEMBER] Role updated: actor={actor.id}, user_id={user_id}, role={role.value}")
    return {"id": user["id"], "email": user["email"], "role": role.value}
