"""
API request and response models for PasswordForge REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
vault/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Enrollment, UserAccount
from auth.store import EMAIL_PATTERN
from vault.models import VaultEntry


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


class TransformRequest(BaseModel):
    """Request body for POST /api/v1/transform. Empty text yields an empty password."""

    text: str = Field(max_length=1000)


class TransformResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    password: str
    length: int


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)
    # Malformed codes reach verify() and fail there as invalid_code.
    code: str = Field(max_length=64, description="Six-digit code from the authenticator app.")


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class EnrollmentResponse(BaseModel):
    """Returned once at signup. secret and qr_code are never shown again."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    secret: str
    provisioning_uri: str
    qr_code: str  # data:image/svg+xml;base64,...

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            account_id=enrollment.account_id,
            email=enrollment.email,
            secret=enrollment.secret,
            provisioning_uri=enrollment.provisioning_uri,
            qr_code=enrollment.qr_data_uri,
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    email: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    otp_enabled: bool
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_account(cls, account: UserAccount) -> "MeResponse":
        return cls(
            account_id=account.id or "",
            email=account.email,
            otp_enabled=account.otp_enabled,
            created_at=account.created_at or "",
            last_login=account.last_login,
        )


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------


class VaultEntryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    label: str = Field(min_length=1, max_length=255)
    value: str = Field(min_length=1, max_length=4000)


class VaultEntryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    label: str
    value: str
    created_at: str

    @classmethod
    def from_entry(cls, entry: VaultEntry) -> "VaultEntryResponse":
        return cls(id=entry.id or 0, label=entry.label, value=entry.value, created_at=entry.created_at)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
