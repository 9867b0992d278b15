"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The mobile client presents its session credential in an
``Authorization: Bearer <token>`` header on every request. There is no
cookie and no server-side "current user": each request is resolved on its
own through AuthService.get_current_account().

get_bearer_credential() only extracts the header (None when absent).
get_current_account() resolves it and lets auth.errors propagate. A missing
header is an invalid session like any other. The exception handler in
api/main.py turns them into 401/404 responses.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/ or contacts/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Account
from auth.service import AuthService


def get_bearer_credential(request: Request) -> str | None:
    """Return the bearer token from the Authorization header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_account(request: Request) -> Account:
    """Require a live session. Raises an AuthError subclass otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    return get_auth_service(request).get_current_account(get_bearer_credential(request))
