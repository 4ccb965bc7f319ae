"""
core/errors.py -- Domain error kinds for PasswordForge.

Every failure the core protocols can report is a ForgeError subclass carrying
a machine-readable code and the HTTP status the API layer maps it to. Route
handlers never build these envelopes by hand: api/main.py registers a single
exception handler that turns any ForgeError into the standard
{"error": {"code", "message"}} body, and web/routes.py renders the message
back into the form that triggered it.

Layer rule: no imports from api/, web/, auth/, or vault/.
"""


class ForgeError(Exception):
    """Base class for recoverable domain errors."""

    code = "forge_error"
    status_code = 400
    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class EmailAlreadyRegistered(ForgeError):
    code = "email_already_registered"
    status_code = 409
    default_message = "An account with this email already exists."


class UserNotFound(ForgeError):
    code = "user_not_found"
    status_code = 404
    default_message = "No account is registered with this email."


class OtpNotEnabled(ForgeError):
    code = "otp_not_enabled"
    status_code = 403
    default_message = "One-time password login is not enabled for this account."


class InvalidCode(ForgeError):
    code = "invalid_code"
    status_code = 401
    default_message = "The one-time code is invalid or has expired."


class StoreUnavailable(ForgeError):
    """Any backing-store I/O failure. Surfaced immediately, never retried."""

    code = "store_unavailable"
    status_code = 503
    default_message = "The data store is unavailable. Please try again later."


class TransformUnavailable(ForgeError):
    """The remote conversion backend failed or returned an unusable reply."""

    code = "transform_unavailable"
    status_code = 502
    default_message = "The password transform service is unavailable."
