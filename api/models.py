"""
API request and response models for SafeConnect REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
contacts/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models for register/login accept missing fields (None) on purpose:
presence and format rules live in AuthService so the API and the CLI reject
the same inputs with the same messages.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from auth.models import Account, AuthResult
from contacts.models import EmergencyContact

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    first_name/last_name also accept the camelCase keys the mobile client sends.
    """

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    first_name: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("first_name", "firstName"),
    )
    last_name: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("last_name", "lastName"),
    )
    phone: Optional[str] = Field(default=None, max_length=32)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public projection of an Account. Never carries the password digest."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: Optional[str]
    phone: Optional[str]
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            phone=account.phone,
            created_at=account.created_at,
        )


class SessionResponse(BaseModel):
    """Response body for successful register (201) and login (200)."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_at: str
    account: AccountResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "SessionResponse":
        return cls(
            token=result.session.credential,
            expires_at=result.session.expires_at,
            account=AccountResponse.from_account(result.account),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Emergency contacts
# ---------------------------------------------------------------------------


class ContactCreate(BaseModel):
    """Request body for POST /api/v1/contacts."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=3, max_length=32, pattern=r"^\+?[0-9 ()\-]+$")
    relationship: Optional[str] = Field(default=None, max_length=50)


class ContactResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    phone: str
    relationship: Optional[str]
    created_at: str

    @classmethod
    def from_contact(cls, contact: EmergencyContact) -> "ContactResponse":
        return cls(
            id=contact.id,
            name=contact.name,
            phone=contact.phone,
            relationship=contact.relationship,
            created_at=contact.created_at,
        )


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
    components: dict[str, str] = Field(default_factory=dict)
