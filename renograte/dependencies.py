"""
renograte/dependencies.py

Reusable FastAPI dependencies for requirement enforcement on API routes.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends

from renograte.authz import Requirement, authorize_all
from renograte.config import IS_DEV
from renograte.db import DbConnection, get_db
from renograte.errors import Forbidden, Unauthenticated
from renograte.members import get_member_profile
from renograte.models import Principal
from renograte.session import get_principal


def require(*requirements: Requirement) -> Callable:
    """
    FastAPI dependency factory enforcing authorization requirements.

    The MemberProfile is only loaded when ACTIVE_MEMBER is among the
    requirements; the decision itself is made by authz.authorize_all.

    Usage in routes:
        @router.post("/admin/thing")
        def thing(principal: Principal = Depends(require(Requirement.ADMIN))):
            ...

    Raises:
        Unauthenticated (401): no usable credential
        Forbidden (403): credential present but requirement not met; the
            exception carries the deny reason for the client
    """
    needs_profile = Requirement.ACTIVE_MEMBER in requirements

    def _check(
        principal: Optional[Principal] = Depends(get_principal),
        conn: DbConnection = Depends(get_db),
    ) -> Principal:
        profile = None
        if principal is not None and needs_profile:
            profile = get_member_profile(conn, principal.id)

        decision = authorize_all(principal, requirements, profile)
        if decision.allowed:
            if IS_DEV:
                print(f"[AUTHZ] Granted: user_id={principal.id}, role={principal.role.value}, "
                      f"requirements={[r.value for r in requirements]}")
            return principal

        if principal is None:
            raise Unauthenticated()

        print(f"[AUTHZ] Denied: user_id={principal.id}, role={principal.role.value}, "
              f"reason={decision.reason.value}")
        raise Forbidden(decision.message, reason=decision.reason.value)

    return _check
