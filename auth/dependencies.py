"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the web UI login flow.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from web/ or vault/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import UserAccount
from auth.tokens import COOKIE_NAME, decode_access_token


def try_get_current_account(request: Request) -> UserAccount | None:
    """Attempt to authenticate the request via cookie or Bearer header.

    Returns the UserAccount on success, None on any failure. Never raises
    for bad credentials -- callers that need a hard 401 should use
    get_current_account().
    """
    token: str | None = request.cookies.get(COOKIE_NAME)

    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None

    account = request.app.state.auth.store.get_by_id(payload["account_id"])
    if account is None or not account.otp_enabled:
        return None
    return account


def get_current_account(request: Request) -> UserAccount:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: UserAccount = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return account
