"""
renograte/routes_member.py

Signed-in user endpoints: password change, membership status lookup,
application, role upgrade and admin review.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from renograte.authz import Requirement
from renograte.db import DbConnection, get_db
from renograte.dependencies import require
from renograte.members import (
    apply_for_membership,
    get_member_profile,
    member_status_payload,
    review_membership,
    update_member_role,
)
from renograte.models import Principal
from renograte.schemas import (
    ChangePasswordRequest,
    MemberRegisterRequest,
    MemberReviewRequest,
    UpdateRoleRequest,
)
from renograte.session import require_principal
from renograte.workflow import change_password

router = APIRouter(
    prefix="/api",
    tags=["member"],
)


@router.get("/user/member-status")
def member_status(
    principal: Principal = Depends(require_principal),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    """Membership status of the signed-in user. No profile is not an error."""
    return member_status_payload(get_member_profile(conn, principal.id))


@router.put("/user/password")
def update_password(
    req: ChangePasswordRequest,
    principal: Principal = Depends(require_principal),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    """
    Change the signed-in user's password.

    Raises:
        Unauthenticated (401): no session
        InvalidInput (400): current password wrong or new password too short
        NotFound (404): user gone or has no password
    """
    change_password(conn, principal.id, req.current_password, req.new_password)
    return {"success": True}


@router.post("/member/register", status_code=201)
def register_member(
    req: MemberRegisterRequest,
    principal: Principal = Depends(require(Requirement.EMAIL_VERIFIED)),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    profile = apply_for_membership(
        conn,
        principal.id,
        plan=req.plan,
        billing_cycle=req.billing_cycle,
        phone=req.phone,
        business_type=req.business_type,
        company=req.company,
        license_number=req.license_number,
        is_early_access=req.is_early_access,
    )
    return {
        "message": "Membership application submitted",
        **member_status_payload(profile),
    }


@router.post("/member/update-role")
def update_role(
    req: UpdateRoleRequest,
    principal: Principal = Depends(require_principal),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    """
    Upgrade a user's role after a plan purchase.

    The updated user's credential still carries the old role; the client
    must call /api/auth/refresh-session afterwards.
    """
    user = update_member_role(
        conn,
        principal,
        req.user_id,
        req.new_role,
        plan_type=req.plan_type,
        billing_cycle=req.billing_cycle,
    )
    return {
        "success": True,
        "message": "Role updated successfully",
        "user": user,
        "refreshRequired": True,
    }


@router.post("/admin/members/{user_id}/review")
def review_member(
    user_id: int,
    req: MemberReviewRequest,
    principal: Principal = Depends(require(Requirement.ADMIN)),
    conn: DbConnection = Depends(get_db),
) -> Dict[str, Any]:
    profile = review_membership(conn, user_id, req.status, req.admin_feedback)
    return {"userId": user_id, **member_status_payload(profile)}
