"""
api/routes/v1/auth.py -- Signup, one-time-code login, and account endpoints.

Routes:
  POST   /api/v1/auth/signup   -- enroll email, return secret + QR code (once)
  POST   /api/v1/auth/login    -- verify one-time code; sets JWT cookie
  POST   /api/v1/auth/logout   -- clears cookie; 200
  GET    /api/v1/auth/me       -- current account info (requires auth)
  DELETE /api/v1/auth/me       -- delete account and its vault entries (requires auth)

Security:
  [H2] POST /signup and POST /login are rate-limited per IP (config strings).
  [M5] Cache-Control: no-store on signup and login responses, success or not,
       since both can carry secrets or tokens.
  Domain errors (EmailAlreadyRegistered, UserNotFound, OtpNotEnabled,
  InvalidCode, StoreUnavailable) propagate as ForgeError; api/main.py maps
  them to the standard error envelope.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    EnrollmentResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    SignupRequest,
)
from auth.dependencies import get_current_account
from auth.models import UserAccount
from auth.protocol import AuthContext, enroll, verify
from auth.tokens import COOKIE_NAME, set_auth_cookie
from core.config import get_settings
from core.errors import ForgeError
from vault.store import VaultStore

logger = logging.getLogger("passwordforge.api")

_settings = get_settings()

# Auth policy:
# - POST   /api/v1/auth/signup:  public, unless SELF_REGISTRATION_ENABLED=false
# - POST   /api/v1/auth/login:   public -- login endpoint must be unauthenticated
# - POST   /api/v1/auth/logout:  public -- clearing a cookie needs no prior auth
# - GET    /api/v1/auth/me:      requires auth (get_current_account)
# - DELETE /api/v1/auth/me:      requires auth (get_current_account)
router = APIRouter()


def _error_json(exc: ForgeError) -> JSONResponse:
    """Same envelope as the ForgeError handler in api/main.py, marked no-store."""
    resp = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.signup_rate_limit)  # [H2] -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/signup", response_model=EnrollmentResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Enroll a new account and return its TOTP secret and QR code.

    The secret is shown in this response only. A repeated email, in any
    letter case, fails with 409 email_already_registered.
    """
    if not _settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )

    ctx: AuthContext = request.app.state.auth
    try:
        enrollment = enroll(ctx, body.email)
    except ForgeError as exc:
        return _error_json(exc)

    resp = JSONResponse(
        status_code=201,
        content=EnrollmentResponse.from_enrollment(enrollment).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(_settings.login_rate_limit)  # [H2] brute-force mitigation for 6-digit codes
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify email + one-time code; return a bearer token and set the JWT cookie."""
    ctx: AuthContext = request.app.state.auth
    try:
        result = verify(ctx, body.email, body.code)
    except ForgeError as exc:
        return _error_json(exc)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
            email=result.account.email,
        ).model_dump(),
    )
    set_auth_cookie(resp, result.token, result.expires_in)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(COOKIE_NAME)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(current_account: UserAccount = Depends(get_current_account)) -> MeResponse:
    """Return identity information for the currently authenticated account."""
    return MeResponse.from_account(current_account)


@router.delete("/auth/me", status_code=204)
def delete_me(
    request: Request,
    current_account: UserAccount = Depends(get_current_account),
) -> Response:
    """Delete the caller's account and vault. This is the only exit from the Enrolled state."""
    ctx: AuthContext = request.app.state.auth
    vault: VaultStore = request.app.state.vault
    removed = vault.delete_entries_for_owner(current_account.id)
    ctx.store.delete_account(current_account.id)
    logger.info("Deleted account %s (%d vault entries)", current_account.id, removed)
    resp = Response(status_code=204)
    resp.delete_cookie(COOKIE_NAME)
    return resp
