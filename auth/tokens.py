"""
auth/tokens.py -- Session token (JWT) utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       account_id, email, and expiry. Verification returns None on any
       failure -- route layer turns that into a 401.

  No placeholder tokens: a session credential is only ever produced here,
       signed with the configured key. If SECRET_KEY is missing outside
       debug mode, get_settings() raises at import and the app does not start.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup: dev mode (DEBUG=true) auto-generates a
       random key with a warning; production mode refuses to start without one.
       Short keys (<32 chars) are rejected with ValueError [M6].

Layer rule: no imports from api/, web/, or vault/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("passwordforge.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

COOKIE_NAME = "access_token"


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def token_lifetime(expire_seconds: int = 0) -> int:
    return expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds


def create_access_token(account_id: str, email: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with account identity and configurable expiry.

    Args:
        account_id:     Opaque account id from the store.
        email:          Normalized email, stored as the JWT subject claim.
        expire_seconds: Session duration in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    expire = datetime.now(timezone.utc) + timedelta(seconds=token_lifetime(expire_seconds))
    payload = {
        "sub": email,
        "account_id": account_id,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated. Route handlers turn None into 401.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
        if "account_id" not in payload:
            return None
        return payload
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the JWT access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=token_lifetime(expire_seconds),
    )
