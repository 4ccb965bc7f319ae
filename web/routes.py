"""
web/routes.py -- Jinja2 template routes for the PasswordForge web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same engine, AuthContext, vault store) but return HTML instead of JSON.

Route registration order matters: POST /vault/{entry_id}/delete must not be
shadowed by a broader /vault/{...} route registered earlier.

Routes:
  GET  /                          -- forge form
  POST /forge                     -- render forged password (+ save form when logged in)
  GET  /signup                    -- signup form
  POST /signup                    -- enroll, render QR code and secret once
  GET  /login                     -- email + one-time code form
  POST /login                     -- verify code, set cookie, redirect
  POST /logout                    -- clear cookie, redirect /login
  GET  /vault                     -- saved passwords (auth required)
  POST /vault                     -- save a password (auth required)
  POST /vault/{entry_id}/delete   -- delete a password (auth required)

Domain errors are rendered back into the form that caused them. Messages come
from the ForgeError instance (fixed strings), never from request input.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import try_get_current_account
from auth.protocol import AuthContext, enroll, verify
from auth.store import is_valid_email
from auth.tokens import COOKIE_NAME, set_auth_cookie
from core.config import get_settings
from core.errors import ForgeError
from core.transform import TransformEngine
from vault.models import VaultEntry
from vault.store import VaultStore

logger = logging.getLogger("passwordforge.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Expose try_get_current_account as a Jinja2 global so layout.html can show
# the signed-in email without every handler passing it explicitly.
templates.env.globals["try_get_current_account"] = try_get_current_account
router = APIRouter()

_MAX_PHRASE = 1000
_MAX_LABEL = 255

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= / ?notice= query params on /login [M3].
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted query strings.
_LOGIN_MESSAGES: dict[str, str] = {
    "enrolled": "Account created. Enter the code from your authenticator app.",
    "deleted": "Your account has been deleted.",
}


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative URLs ("//host") so a crafted
    /login?next=... link cannot bounce the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a RedirectResponse to /login if not authenticated, None if OK.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_account(request) is None:
        return RedirectResponse(f"/login?next={request.url.path}", status_code=302)
    return None


# ---------------------------------------------------------------------------
# Forge
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", {})


@router.post("/forge", response_class=HTMLResponse)
def forge(request: Request, phrase: str = Form("")) -> HTMLResponse:
    """Forge a password from the submitted phrase and show it.

    Logged-in users also get a form to save the result to their vault.
    """
    context: dict = {"phrase": phrase}
    if not phrase.strip():
        context["error_msg"] = "Please enter a name or phrase to forge."
        return templates.TemplateResponse(request, "index.html", context, status_code=400)
    if len(phrase) > _MAX_PHRASE:
        context["error_msg"] = f"Phrases are limited to {_MAX_PHRASE} characters."
        return templates.TemplateResponse(request, "index.html", context, status_code=400)

    engine: TransformEngine = request.app.state.engine
    try:
        context["password"] = engine.transform(phrase)
    except ForgeError as exc:
        context["error_msg"] = exc.message
        return templates.TemplateResponse(request, "index.html", context, status_code=exc.status_code)
    return templates.TemplateResponse(request, "index.html", context)


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> HTMLResponse:
    if try_get_current_account(request) is not None:
        return RedirectResponse("/vault", status_code=302)
    return templates.TemplateResponse(
        request,
        "signup.html",
        {"registration_open": get_settings().self_registration_enabled},
    )


@router.post("/signup", response_class=HTMLResponse)
def signup_post(request: Request, email: str = Form(...)) -> HTMLResponse:
    """Enroll the email and show the QR code + secret. Shown exactly once."""
    if not get_settings().self_registration_enabled:
        return templates.TemplateResponse(
            request, "signup.html", {"registration_open": False}, status_code=403
        )

    email = email.strip()
    if not is_valid_email(email):
        return templates.TemplateResponse(
            request,
            "signup.html",
            {"registration_open": True, "email": email, "error_msg": "Please enter a valid email address."},
            status_code=400,
        )

    ctx: AuthContext = request.app.state.auth
    try:
        enrollment = enroll(ctx, email)
    except ForgeError as exc:
        return templates.TemplateResponse(
            request,
            "signup.html",
            {"registration_open": True, "email": email, "error_msg": exc.message},
            status_code=exc.status_code,
        )

    resp = templates.TemplateResponse(request, "signup.html", {"registration_open": True, "enrollment": enrollment})
    resp.headers["Cache-Control"] = "no-store"  # [M5] page carries the secret
    return resp


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    if try_get_current_account(request) is not None:
        return RedirectResponse("/", status_code=302)
    notice = _LOGIN_MESSAGES.get(request.query_params.get("notice", ""))
    return templates.TemplateResponse(
        request,
        "login.html",
        {"notice_msg": notice, "next": _safe_next(request.query_params.get("next"))},
    )


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(...),
    code: str = Form(...),
    next: str = Form("/"),
) -> HTMLResponse:
    """Verify the one-time code; on success set the cookie and redirect to next."""
    ctx: AuthContext = request.app.state.auth
    next_url = _safe_next(next)  # [C2]
    try:
        result = verify(ctx, email, code)
    except ForgeError as exc:
        resp = templates.TemplateResponse(
            request,
            "login.html",
            {"email": email.strip(), "error_msg": exc.message, "next": next_url},
            status_code=exc.status_code,
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    resp = RedirectResponse(next_url, status_code=302)
    set_auth_cookie(resp, result.token, result.expires_in)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the JWT cookie and redirect to the login page."""
    resp = RedirectResponse("/login", status_code=302)
    resp.delete_cookie(COOKIE_NAME)
    return resp


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------


@router.get("/vault", response_class=HTMLResponse)
def vault_page(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    account = try_get_current_account(request)
    vault: VaultStore = request.app.state.vault
    return templates.TemplateResponse(request, "vault.html", {"entries": vault.list_entries(account.id)})


@router.post("/vault", response_class=HTMLResponse)
def vault_save(
    request: Request,
    label: str = Form(...),
    value: str = Form(...),
) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    account = try_get_current_account(request)
    vault: VaultStore = request.app.state.vault

    label = label.strip()
    if not label or len(label) > _MAX_LABEL or not value:
        return templates.TemplateResponse(
            request,
            "vault.html",
            {
                "entries": vault.list_entries(account.id),
                "error_msg": "A label (up to 255 characters) and a password are required.",
            },
            status_code=400,
        )

    vault.create_entry(VaultEntry(owner_id=account.id, label=label, value=value))
    return RedirectResponse("/vault", status_code=302)


@router.post("/vault/{entry_id}/delete", response_class=HTMLResponse)
def vault_delete(request: Request, entry_id: int) -> RedirectResponse:
    if redirect := _require_auth(request):
        return redirect
    account = try_get_current_account(request)
    vault: VaultStore = request.app.state.vault
    # Store enforces ownership; deleting someone else's id is a silent no-op.
    vault.delete_entry(entry_id, account.id)
    return RedirectResponse("/vault", status_code=302)
