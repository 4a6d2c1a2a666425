"""
renograte/schemas.py

Pydantic request schemas for the auth, member and payment routes.
Wire names follow the web client (camelCase); Python names are snake_case.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator

from renograte.models import MemberStatus


def _strip(v):
    if isinstance(v, str):
        return v.strip()
    return v


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ========================================================================
# AUTH SCHEMAS
# ========================================================================

class EmailRequest(_Request):
    """Body for forgot-password and resend-verification."""
    email: str = Field(..., min_length=3, max_length=320)

    @field_validator("email", mode="before")
    @classmethod
    def trim_email(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v):
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v


class SignupRequest(EmailRequest):
    name: str = Field(..., min_length=1, max_length=200)
    password: str

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class LoginRequest(_Request):
    email: str
    password: str


class ResetPasswordRequest(_Request):
    token: str = Field(..., min_length=1)
    password: str


class ChangePasswordRequest(_Request):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=1)


# ========================================================================
# MEMBER SCHEMAS
# ========================================================================

class MemberRegisterRequest(_Request):
    """Membership application for the signed-in user."""
    plan: str = Field(..., min_length=1)
    billing_cycle: str = Field(..., alias="billingCycle", min_length=1)
    phone: str = Field(..., min_length=10, max_length=32)
    business_type: str = Field(..., alias="businessType", min_length=1)
    company: Optional[str] = None
    license_number: Optional[str] = Field(None, alias="licenseNumber")
    is_early_access: bool = Field(False, alias="isEarlyAccess")


class UpdateRoleRequest(_Request):
    user_id: int = Field(..., alias="userId")
    new_role: str = Field(..., alias="newRole")
    plan_type: Optional[str] = Field(None, alias="planType")
    billing_cycle: Optional[str] = Field(None, alias="billingCycle")


class MemberReviewRequest(_Request):
    status: MemberStatus
    admin_feedback: Optional[str] = Field(None, alias="adminFeedback", max_length=2000)


# ========================================================================
# PAYMENT SCHEMAS
# ========================================================================

class PaymentIntentRequest(_Request):
    # Kept as sent; payments.to_minor_units does the exact conversion.
    # Strict so JSON true is not read as 1.
    amount: Union[StrictInt, StrictFloat, StrictStr]
    currency: str = "usd"
    plan: str
    billing_cycle: str = Field(..., alias="billingCycle")
    user_id: Optional[Union[StrictInt, StrictStr]] = Field(None, alias="userId")


class SubscriptionRequest(EmailRequest):
    """Checkout details for a recurring membership."""
    name: str = Field(..., min_length=1, max_length=200)
    plan: str = Field(..., min_length=1)
    billing_cycle: str = Field(..., alias="billingCycle", min_length=1)
    phone: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    license_number: Optional[str] = Field(None, alias="licenseNumber")
    business_type: Optional[str] = Field(None, alias="businessType")
