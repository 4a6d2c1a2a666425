# renograte/config.py
# Environment-aware configuration for the Renograte backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# Session credential signing
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-only-secret-change-me")
ALGORITHM = "HS256"
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "renograte_session")
SESSION_MAX_AGE_DAYS = int(os.environ.get("SESSION_MAX_AGE_DAYS", "30"))

# Token lifetimes
# Reset links grant a password change, so they stay short. Verification links
# only confirm ownership of the inbox and are often opened a day later.
RESET_TOKEN_MINUTES = int(os.environ.get("RESET_TOKEN_MINUTES", "60"))
VERIFICATION_TOKEN_HOURS = int(os.environ.get("VERIFICATION_TOKEN_HOURS", "24"))

# Database configuration
# DATABASE_URL takes precedence (managed Postgres in staging/prod)
# Falls back to SQLite for local development and tests
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "renograte.db")

# Links in outgoing mail point here
APP_BASE_URL = os.environ.get(
    "APP_BASE_URL",
    "https://www.renograte.com" if IS_PROD else "http://localhost:3000",
).rstrip("/")

# Outgoing mail
SMTP_HOST = os.environ.get("SMTP_HOST", "")
SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
SMTP_USER = os.environ.get("SMTP_USER", "info@renograte.com")
SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.environ.get("SMTP_USE_TLS", "true").lower() == "true"
EMAIL_FROM = os.environ.get("EMAIL_FROM", '"Renograte" <info@renograte.com>')

# Billing
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")

# Subscriptions expand invoice.payment_intent, which later API versions dropped
STRIPE_API_VERSION = os.environ.get("STRIPE_API_VERSION", "2024-06-20")

# Subscription prices: plan name -> billing cycle -> Stripe price id
STRIPE_PRICE_IDS = {
    "Agents Monthly": {
        "monthly": os.environ.get("STRIPE_PRICE_AGENT_MONTHLY", "price_1RQWnqPQcXidxFd9KtXcZP6y"),
        "annual": os.environ.get("STRIPE_PRICE_AGENT_ANNUAL", "price_1RRCh7PQcXidxFd9goZZOKYL"),
    },
    "Service Providers (Contractors) monthly membership": {
        "monthly": os.environ.get("STRIPE_PRICE_CONTRACTOR_MONTHLY", "price_1RQWsSPQcXidxFd9tsnmlVAG"),
        "annual": os.environ.get("STRIPE_PRICE_CONTRACTOR_ANNUAL", "price_1RRCiwPQcXidxFd9bGdROkqI"),
    },
}

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if IS_STAGING:
    staging_url = os.environ.get("CORS_ORIGINS", "")
    if staging_url:
        CORS_ORIGINS.extend(staging_url.split(","))
    else:
        CORS_ORIGINS.append("https://staging.renograte.com")

if IS_PROD:
    prod_origins = os.environ.get("CORS_ORIGINS", "")
    if prod_origins:
        CORS_ORIGINS.extend(prod_origins.split(","))
    else:
        CORS_ORIGINS.append("https://www.renograte.com")

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))
IS_SQLITE = not IS_POSTGRES

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {'PostgreSQL' if IS_POSTGRES else 'SQLite (local dev)'}")
print(f"[CONFIG] Session lifetime: {SESSION_MAX_AGE_DAYS} days")
print(f"[CONFIG] Reset token: {RESET_TOKEN_MINUTES} minutes")
print(f"[CONFIG] Verification token: {VERIFICATION_TOKEN_HOURS} hours")
print(f"[CONFIG] Mail: {'SMTP ' + SMTP_HOST if SMTP_HOST else 'console (no SMTP_HOST)'}")
