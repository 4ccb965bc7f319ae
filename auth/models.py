"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in vault/models.py -- dataclasses own domain shape; stores and the protocol
module do the work.

Layer rule: no imports from api/, web/, or vault/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class UserAccount:
    """An identity that logs in with email + one-time code.

    id is an opaque UUID hex string issued by the store at enrollment.
    email is always stored normalized (stripped, lower-case); the UNIQUE
    constraint on that column is what makes signup race-free.

    otp_secret is the base32 TOTP secret. It is written once at enrollment
    and never rotated.

    last_otp_step is the most recent consumed time step. Only maintained
    when replay protection is enabled; None otherwise.
    """

    email: str
    id: str | None = None
    otp_secret: str | None = None
    otp_enabled: bool = False
    created_at: str | None = None
    last_login: str | None = None
    last_otp_step: int | None = None


@dataclass
class Enrollment:
    """Everything the signup screen needs to hand the secret to an authenticator app.

    The secret is shown once, here. It is never returned by any other call.
    """

    account_id: str
    email: str
    secret: str
    provisioning_uri: str
    qr_svg: bytes
    qr_data_uri: str


@dataclass
class LoginResult:
    """Successful verification: the account plus a freshly minted session token."""

    account: UserAccount
    token: str
    expires_in: int
