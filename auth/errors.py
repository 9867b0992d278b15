"""
auth/errors.py -- Failure kinds raised by the auth layer.

Every AuthService operation exits either with a result or with one of these
exceptions. Storage and hashing exceptions never leave the service raw; they
are logged and re-raised as InternalError.

Each class carries a stable machine-readable ``code`` and a short message that
is safe to show an end user. The HTTP status mapping lives in api/main.py so
this module stays transport-agnostic.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth failures."""

    code: str = "auth_error"
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or missing input. The caller can re-prompt and retry."""

    code = "validation_error"
    default_message = "Invalid input."


class DuplicateAccountError(AuthError):
    code = "duplicate_account"
    default_message = "An account with that email already exists."


class InvalidCredentialsError(AuthError):
    """Unknown email and wrong password both raise this, with the same message."""

    code = "invalid_credentials"
    default_message = "Invalid email or password."


class InvalidSessionError(AuthError):
    """Session credential is forged, expired, or revoked."""

    code = "invalid_session"
    default_message = "Session is invalid or has expired. Please sign in again."


class AccountNotFoundError(AuthError):
    """A live session points at an account that no longer exists."""

    code = "account_not_found"
    default_message = "Session is no longer valid. Please sign in again."


class MissingCredentialError(AuthError):
    code = "missing_credential"
    default_message = "No session credential provided."


class InternalError(AuthError):
    """Storage or hashing failure. Detail is logged server-side only."""

    code = "internal_error"
    default_message = "An unexpected error occurred."
