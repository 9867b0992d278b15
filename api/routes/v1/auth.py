"""
api/routes/v1/auth.py -- Account registration and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account + auto-login; 201
  POST /api/v1/auth/login      -- password login; 200
  POST /api/v1/auth/logout     -- revoke the bearer session; 200 (idempotent)
  GET  /api/v1/auth/me         -- current account (requires auth)

Failures are raised by AuthService as auth.errors kinds and rendered by the
AuthError handler in api/main.py. Routes never build error bodies themselves.

Security:
  Login returns the same "invalid_credentials" error for an unknown email and
  a wrong password. AuthService also equalizes timing between the two.
  Cache-Control: no-store on every response that carries a token.

register and login are plain ``def`` handlers on purpose: FastAPI runs them in
its worker thread pool, so a bcrypt computation never blocks the event loop
for other requests.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import AccountResponse, LoginRequest, MessageResponse, RegisterRequest, SessionResponse
from auth.dependencies import get_auth_service, get_bearer_credential, get_current_account
from auth.models import Account

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/logout:   bearer credential required (400 if absent), no session check
# - GET  /api/v1/auth/me:       requires a live session (get_current_account)
router = APIRouter()


def _token_response(status_code: int, body: SessionResponse) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=SessionResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return it together with a new session token."""
    result = get_auth_service(request).register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    return _token_response(201, SessionResponse.from_result(result))


@router.post("/auth/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a new session token."""
    result = get_auth_service(request).login(body.email, body.password)
    return _token_response(200, SessionResponse.from_result(result))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> MessageResponse:
    """Revoke the presented session. Succeeds even if it was already gone."""
    get_auth_service(request).logout(get_bearer_credential(request))
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=AccountResponse)
def me(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the public profile of the account behind the bearer session."""
    return AccountResponse.from_account(current_account)
