"""
auth/service.py -- AuthService: register, login, logout, current account.

Each operation is a linear validate -> act -> respond pipeline. It either
returns a result or raises one of the auth.errors kinds; nothing else leaves
this module. Storage and hashing exceptions are logged with their traceback
and re-raised as InternalError so the caller never sees SQL or bcrypt detail.

The service holds no "current user". Callers pass the session credential on
every call, and every call re-reads the stores.

Security:
  Login collapses "no such email" and "wrong password" into the same
  InvalidCredentialsError, and burns a bcrypt verification in the unknown
  email case so timing does not leak which emails are registered either.

  Plaintext passwords are never logged, stored, or echoed in error messages.

Layer rule: no imports from api/ or contacts/.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import (
    AccountNotFoundError,
    AuthError,
    InternalError,
    InvalidCredentialsError,
    MissingCredentialError,
    ValidationError,
)
from auth.models import Account, AuthResult
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.sessions import SessionIssuer
from auth.store import AccountStore, SessionStore, create_auth_engine

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from core.config import Settings

logger = logging.getLogger("safeconnect.auth")

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
DEFAULT_MIN_PASSWORD_LENGTH = 6


@contextmanager
def _internal_errors(operation: str) -> Iterator[None]:
    """Translate storage/hashing failures into InternalError, logging the cause."""
    try:
        yield
    except AuthError:
        raise
    except (SQLAlchemyError, OSError, ValueError) as exc:
        logger.exception("%s failed with an internal error", operation)
        raise InternalError() from exc


class AuthService:
    """Orchestrates the account store, password hasher and session issuer.

    Usage:
        service = AuthService(accounts, issuer, PasswordHasher(rounds=10))
        result = service.register("a@x.com", "secret1", "Ann")
        service.get_current_account(result.session.credential)
        service.logout(result.session.credential)
    """

    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionIssuer,
        hasher: PasswordHasher,
        min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self.hasher = hasher
        self.min_password_length = min_password_length

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(
        self,
        email: str | None,
        password: str | None,
        first_name: str | None,
        last_name: str | None = None,
        phone: str | None = None,
    ) -> AuthResult:
        """Create an account and sign it in.

        All validation runs before anything is hashed or written, so a
        rejected registration leaves no trace in the store. The account and
        its first session commit together or not at all.
        """
        if not email or not password:
            raise ValidationError("Email and password are required.")
        if not first_name or not first_name.strip():
            raise ValidationError("First name is required.")
        if len(password) < self.min_password_length:
            raise ValidationError(f"Password must be at least {self.min_password_length} characters.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        if not EMAIL_RE.fullmatch(email):
            raise ValidationError("Email address is not valid.")

        with _internal_errors("register"):
            digest = self.hasher.hash(password)
            with self.accounts.engine.begin() as conn:
                account = self.accounts.create_account(
                    email=email,
                    password_digest=digest,
                    first_name=first_name.strip(),
                    last_name=last_name or None,
                    phone=phone or None,
                    conn=conn,
                )
                session = self.sessions.issue(account.id, conn=conn)
        logger.info("Registered account %s", account.id)
        return AuthResult(account=account, session=session)

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Verify email + password and issue a new session."""
        if not email or not password:
            raise ValidationError("Email and password are required.")

        with _internal_errors("login"):
            account = self.accounts.find_by_email(email)
            if account is None:
                self.hasher.burn(password)
                logger.info("Login rejected: invalid credentials")
                raise InvalidCredentialsError()
            if not self.hasher.verify(password, account.password_digest):
                logger.info("Login rejected: invalid credentials")
                raise InvalidCredentialsError()
            session = self.sessions.issue(account.id)
        logger.info("Account %s signed in", account.id)
        return AuthResult(account=account, session=session)

    def logout(self, credential: str | None) -> bool:
        """End the session behind credential.

        Idempotent: an unknown or already revoked credential still succeeds.
        Returns True if a session row was actually removed.
        """
        if not credential:
            raise MissingCredentialError()
        with _internal_errors("logout"):
            removed = self.sessions.revoke(credential)
        if removed:
            logger.info("Session revoked")
        else:
            logger.debug("Logout for unknown or already revoked session")
        return removed

    def get_current_account(self, credential: str | None) -> Account:
        """Resolve a session credential to its account.

        Raises InvalidSessionError for a missing, forged, expired or revoked
        credential and AccountNotFoundError if the session outlived its
        account.
        """
        with _internal_errors("get_current_account"):
            account_id = self.sessions.verify(credential)
            account = self.accounts.find_by_id(account_id)
        if account is None:
            logger.warning("Orphaned session for missing account %s", account_id)
            raise AccountNotFoundError()
        return account

    def purge_expired_sessions(self) -> int:
        with _internal_errors("purge_expired_sessions"):
            removed = self.sessions.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed


def build_auth_service(settings: Settings, engine: Engine | None = None) -> AuthService:
    """Wire an AuthService from Settings.

    Pass engine to share an existing connection pool (tests, CLI); otherwise
    one is created for settings.database_url.
    """
    engine = engine or create_auth_engine(settings.database_url)
    issuer = SessionIssuer(
        SessionStore(engine),
        settings.secret_key,
        ttl_seconds=settings.session_ttl_seconds,
    )
    return AuthService(
        AccountStore(engine),
        issuer,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        min_password_length=settings.min_password_length,
    )
