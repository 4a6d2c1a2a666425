# ---------------------------------------------------------
# renograte/main.py
# Renograte - Marketplace auth & billing backend
#
# Run: uvicorn renograte.main:app --reload (from repo root)
#
# - FastAPI + SQLite (PostgreSQL when DATABASE_URL is set)
# - /api/auth/*              : signup, login, session checks, verification, reset
# - /api/user/member-status  : membership state of the signed-in user
# - /api/user/password       : password change for the signed-in user
# - /api/member/*            : membership application and role upgrade
# - /api/admin/members/*     : admin review of applications
# - /api/create-payment-intent : Stripe one-off checkout
# - /api/create-subscription : Stripe recurring membership
# - page gate                : redirects for protected pages
# ---------------------------------------------------------

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from renograte.config import CORS_ORIGINS, IS_DEV, IS_PROD
from renograte.errors import AppError, Forbidden
from renograte.guards import PageGateMiddleware
from renograte.migrate import run_migrations
from renograte.routes_auth import router as auth_router
from renograte.routes_member import router as member_router
from renograte.routes_payments import router as payments_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    run_migrations()
    yield


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="Renograte Backend", version="0.1", lifespan=lifespan)

# Middleware added last runs first: CORS wraps the page gate
app.add_middleware(PageGateMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error responses: always {"error": message}
# ---------------------------------------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    body = {"error": exc.message}
    if isinstance(exc, Forbidden) and exc.reason:
        body["reason"] = exc.reason
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if IS_DEV:
        print(f"[API] Invalid input: path={request.url.path}, errors={exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid input"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    print(f"[ERROR] Unhandled exception: path={request.url.path}, error={exc!r}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(member_router)
app.include_router(payments_router)
