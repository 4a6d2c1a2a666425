"""
renograte/routes_payments.py

Stripe checkout endpoints: one-off payment intents and subscriptions.
"""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter

from renograte.payments import create_payment_intent, create_subscription
from renograte.schemas import PaymentIntentRequest, SubscriptionRequest

router = APIRouter(
    prefix="/api",
    tags=["payments"],
)


@router.post("/create-payment-intent")
def create_payment_intent_route(req: PaymentIntentRequest) -> Dict[str, str]:
    """
    Create a PaymentIntent for the selected plan.

    Raises:
        InvalidInput (400): bad amount or currency
        InternalError (500): Stripe failure (details logged server-side)
    """
    client_secret = create_payment_intent(
        req.amount,
        req.currency,
        req.plan,
        req.billing_cycle,
        user_id=req.user_id,
    )
    return {"clientSecret": client_secret}


@router.post("/create-subscription")
def create_subscription_route(req: SubscriptionRequest) -> Dict[str, str]:
    """
    Start a recurring membership; the client confirms the first payment
    with the returned clientSecret.

    Raises:
        InvalidInput (400): bad email or unknown plan/billing cycle
        InternalError (500): Stripe failure (details logged server-side)
    """
    return create_subscription(
        req.name,
        req.email,
        req.plan,
        req.billing_cycle,
        phone=req.phone,
        company=req.company,
        role=req.role,
        license_number=req.license_number,
        business_type=req.business_type,
    )
