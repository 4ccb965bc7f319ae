"""
auth/protocol.py -- OTP enrollment and verification.

Per-account state machine:

    Unenrolled --enroll(email)--> Enrolled --verify(code)--> Enrolled ...
                                      |
                                      +--delete--> gone

enroll() and verify() are plain functions over an explicitly constructed
AuthContext. The context owns the account store handle and the protocol
knobs (issuer, window, replay flag, clock). The API lifespan builds one
context at startup and closes it at shutdown; tests build their own with a
fake clock. Nothing here reads module-level provider singletons.

Errors are raised as core.errors.ForgeError subclasses and recovered at the
request boundary (api/main.py exception handler, web/routes.py forms).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from auth import otp
from auth.models import Enrollment, LoginResult, UserAccount
from auth.store import AccountStore, normalize_email
from auth.tokens import create_access_token, token_lifetime
from core.config import Settings
from core.errors import EmailAlreadyRegistered, InvalidCode, OtpNotEnabled, UserNotFound

logger = logging.getLogger("passwordforge.auth")


@dataclass
class AuthContext:
    """Handles and settings shared by every enroll/verify call in a process."""

    store: AccountStore
    issuer: str = "PasswordForge"
    valid_window: int = 1
    replay_protection: bool = False
    clock: Callable[[], float] = field(default=time.time)

    @classmethod
    def from_settings(cls, settings: Settings, store: AccountStore | None = None) -> AuthContext:
        return cls(
            store=store or AccountStore(settings.auth_db_url),
            issuer=settings.otp_issuer,
            valid_window=settings.otp_valid_window,
            replay_protection=settings.otp_replay_protection,
        )

    def close(self) -> None:
        self.store.close()


def enroll(ctx: AuthContext, email: str) -> Enrollment:
    """Create an account with a fresh TOTP secret and return its enrollment data.

    The pre-check gives a quick answer in the common case. It is not the
    guard: create_account() relies on UNIQUE(email), so a concurrent signup
    that slips past the pre-check still fails with EmailAlreadyRegistered.
    """
    email = normalize_email(email)
    if ctx.store.get_by_email(email) is not None:
        raise EmailAlreadyRegistered()

    secret = otp.generate_secret()
    uri = otp.provisioning_uri(secret, email, ctx.issuer)

    account_id = ctx.store.create_account(
        UserAccount(email=email, otp_secret=secret, otp_enabled=True),
    )
    logger.info("Enrolled account %s", account_id)

    svg = otp.render_qr_svg(uri)
    return Enrollment(
        account_id=account_id,
        email=email,
        secret=secret,
        provisioning_uri=uri,
        qr_svg=svg,
        qr_data_uri=otp.svg_data_uri(svg),
    )


def verify(ctx: AuthContext, email: str, code: str) -> LoginResult:
    """Check a one-time code and issue a session token.

    Raises UserNotFound, OtpNotEnabled, or InvalidCode. With replay
    protection on, a time step that was already consumed is InvalidCode too.
    """
    account = ctx.store.get_by_email(email)
    if account is None:
        raise UserNotFound()
    if not account.otp_enabled or not account.otp_secret:
        raise OtpNotEnabled()

    step = otp.matching_step(account.otp_secret, code, ctx.clock(), ctx.valid_window)
    if step is None:
        logger.info("Rejected one-time code for account %s", account.id)
        raise InvalidCode()

    if ctx.replay_protection and not ctx.store.record_otp_step(account.id, step):
        logger.warning("Replayed one-time code for account %s", account.id)
        raise InvalidCode()

    ctx.store.update_last_login(account.id)
    expires_in = token_lifetime()
    token = create_access_token(account.id, account.email, expires_in)
    logger.info("Login succeeded for account %s", account.id)
    return LoginResult(account=account, token=token, expires_in=expires_in)
