"""Shared constants and fakes for the SafeConnect test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.engine import Engine

from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.sessions import SessionIssuer
from auth.store import AccountStore, SessionStore

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789abcdef"

# bcrypt's minimum cost keeps the suite fast; production uses 10.
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def build_service(engine: Engine, clock: FakeClock | None = None) -> AuthService:
    """AuthService on engine at test bcrypt cost, optionally on a fake clock."""
    kwargs = {"clock": clock} if clock is not None else {}
    issuer = SessionIssuer(SessionStore(engine), TEST_SECRET, **kwargs)
    return AuthService(AccountStore(engine), issuer, PasswordHasher(rounds=TEST_ROUNDS))
