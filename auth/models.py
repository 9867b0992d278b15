"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the service
do the work; these only carry shape.

Layer rule: no imports from api/ or contacts/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A registered SafeConnect user.

    email is the login key and is compared exactly as stored (case-sensitive).
    password_digest is the bcrypt output; the plaintext is never kept.
    Accounts are created by registration and never mutated by the auth layer.

    id is None before the record is written to the database.
    """

    email: str
    password_digest: str
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    id: int | None = None
    created_at: str = ""  # ISO 8601 UTC, set by store on insert


@dataclass
class Session:
    """A server-tracked login session.

    credential is the signed bearer token handed to the client. The row is the
    source of truth for revocation: deleting it ends the session even though
    the token's own signature and exp claim would still check out.

    expires_at is fixed at issuance (no sliding expiration).
    """

    account_id: int
    credential: str
    issued_at: str  # ISO 8601 UTC
    expires_at: str  # ISO 8601 UTC
    id: int | None = None


@dataclass
class AuthResult:
    """Successful register/login outcome: who signed in and their new session."""

    account: Account
    session: Session
