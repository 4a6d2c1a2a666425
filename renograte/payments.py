"""
renograte/payments.py

Stripe billing for memberships: one-off PaymentIntents and recurring
subscriptions.

Amounts arrive as decimal major units ("19.99") and are converted to the
integer minor units Stripe expects using Decimal arithmetic only; a float
multiply would turn 19.99 into 1998.9999... and charge the wrong amount.

Each call gets a fresh idempotency key ({user or "payment"}-{epoch ms}-{hex}).
The key protects against the SDK's own network retries, but a client that
retries the whole request gets a new key and therefore a new intent: there is
no deduplication of logical attempts.
"""

from __future__ import annotations

import secrets
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

import stripe

from renograte.config import IS_DEV, STRIPE_API_VERSION, STRIPE_PRICE_IDS, STRIPE_SECRET_KEY
from renograte.errors import InternalError, InvalidInput

# Currencies Stripe charges in whole units
ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}

# Currencies with three decimal places
THREE_DECIMAL_CURRENCIES = {"bhd", "jod", "kwd", "omr", "tnd"}

# Stripe caps a charge at eight digits in the smallest unit
MAX_MINOR_AMOUNT = 99_999_999


def currency_exponent(currency: str) -> int:
    code = currency.lower()
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def to_minor_units(amount: Union[str, int, float, Decimal], currency: str) -> int:
    """
    Convert a major-unit amount to Stripe's integer minor units, exactly.

    Floats are read through their shortest repr (19.99 -> "19.99"), so the
    value a client typed is the value charged.

    Raises:
        InvalidInput: non-numeric, non-positive, above MAX_MINOR_AMOUNT, or
            finer than the currency allows
    """
    if isinstance(amount, bool):
        raise InvalidInput("Invalid amount")

    try:
        value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Invalid amount")

    if not value.is_finite() or value <= 0:
        raise InvalidInput("Amount must be greater than zero")

    exponent = currency_exponent(currency)
    # Bound the size before any arithmetic on client-supplied exponents ("1e999999")
    if value.adjusted() + exponent >= len(str(MAX_MINOR_AMOUNT)):
        raise InvalidInput("Amount exceeds the maximum allowed")

    rounded = value.quantize(Decimal(1).scaleb(-exponent))
    if rounded != value:
        raise InvalidInput(f"Amount has too many decimal places for {currency.upper()}")
    return int(rounded.scaleb(exponent))


def make_idempotency_key(user_id: Optional[Any] = None, now_ms: Optional[int] = None) -> str:
    prefix = str(user_id) if user_id else "payment"
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{timestamp}-{secrets.token_hex(4)}"


def create_payment_intent(
    amount: Union[str, int, float, Decimal],
    currency: str,
    plan: str,
    billing_cycle: str,
    user_id: Optional[Any] = None,
) -> str:
    """
    Create a PaymentIntent and return its client secret.

    Raises:
        InvalidInput: bad amount or currency
        InternalError: Stripe rejected the call or was unreachable; the
            provider's message is logged, never returned
    """
    if not currency or not currency.isalpha() or len(currency) != 3:
        raise InvalidInput("Invalid currency")

    currency = currency.lower()
    minor_amount = to_minor_units(amount, currency)
    idempotency_key = make_idempotency_key(user_id)

    metadata = {"plan": plan, "billingCycle": billing_cycle}
    if user_id:
        metadata["userId"] = str(user_id)

    try:
        intent = stripe.PaymentIntent.create(
            api_key=STRIPE_SECRET_KEY or None,
            amount=minor_amount,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        print(f"[PAYMENT] Stripe error creating payment intent: plan={plan}, "
              f"billing_cycle={billing_cycle}, user_id={user_id}, error={e!r}")
        raise InternalError("Error creating payment intent")

    if IS_DEV:
        print(f"[PAYMENT] Payment intent created: id={intent['id']}, amount={minor_amount}, "
              f"currency={currency}, plan={plan}, user_id={user_id}")
    return intent["client_secret"]


def get_price_id(plan: str, billing_cycle: str) -> Optional[str]:
    return STRIPE_PRICE_IDS.get(plan, {}).get(billing_cycle)


def _find_or_create_customer(
    name: str,
    email: str,
    phone: Optional[str],
    metadata: Dict[str, str],
) -> Any:
    existing = stripe.Customer.list(
        api_key=STRIPE_SECRET_KEY or None,
        stripe_version=STRIPE_API_VERSION,
        email=email,
        limit=1,
    )
    if existing["data"]:
        return existing["data"][0]

    params = {"name": name, "email": email, "metadata": metadata}
    if phone:
        params["phone"] = phone
    return stripe.Customer.create(
        api_key=STRIPE_SECRET_KEY or None,
        stripe_version=STRIPE_API_VERSION,
        **params,
    )


def create_subscription(
    name: str,
    email: str,
    plan: str,
    billing_cycle: str,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    role: Optional[str] = None,
    license_number: Optional[str] = None,
    business_type: Optional[str] = None,
) -> Dict[str, str]:
    """
    Start a subscription for plan/billing_cycle and return what the client
    needs to confirm the first payment.

    The Stripe customer is reused when one already exists for the email. The
    subscription starts incomplete; it activates once the client confirms the
    first invoice's PaymentIntent with the returned client secret.

    Returns:
        {"subscriptionId": ..., "clientSecret": ...}

    Raises:
        InvalidInput: no price for this plan and billing cycle
        InternalError: Stripe rejected the call or was unreachable
    """
    price_id = get_price_id(plan, billing_cycle)
    if not price_id:
        raise InvalidInput("Invalid plan or billing cycle")

    customer_metadata = {
        key: value
        for key, value in {
            "company": company,
            "role": role,
            "licenseNumber": license_number,
            "businessType": business_type,
        }.items()
        if value
    }

    try:
        customer = _find_or_create_customer(name, email, phone, customer_metadata)
        subscription = stripe.Subscription.create(
            api_key=STRIPE_SECRET_KEY or None,
            stripe_version=STRIPE_API_VERSION,
            customer=customer["id"],
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
            metadata={"plan": plan, "billingCycle": billing_cycle},
            idempotency_key=make_idempotency_key(customer["id"]),
        )
        payment_intent = subscription["latest_invoice"]["payment_intent"]
        stripe.PaymentIntent.modify(
            payment_intent["id"],
            api_key=STRIPE_SECRET_KEY or None,
            stripe_version=STRIPE_API_VERSION,
            metadata={"subscriptionId": subscription["id"]},
        )
    except stripe.StripeError as e:
        print(f"[PAYMENT] Stripe error creating subscription: plan={plan}, "
              f"billing_cycle={billing_cycle}, error={e!r}")
        raise InternalError("Error creating subscription")

    print(f"[PAYMENT] Subscription created: id={subscription['id']}, customer={customer['id']}, plan={plan}")
    return {
        "subscriptionId": subscription["id"],
        "clientSecret": payment_intent["client_secret"],
    }
