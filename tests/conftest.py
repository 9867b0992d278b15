"""
tests/conftest.py -- Shared test fixtures for SafeConnect.

This module provides:
  - _make_test_engine(): isolated named shared-memory SQLite DB per suffix
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - engine / issuer / service: unit-level fixtures on a fresh in-memory DB
  - api_client: TestClient on the real app with an isolated DB

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any api/ import so get_settings() auto-generates
SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.service import AuthService
from auth.sessions import SessionIssuer
from auth.store import SessionStore, create_auth_engine
from contacts.store import ContactStore
from tests.helpers import TEST_SECRET, FakeClock, build_service

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_engine(db_suffix: str) -> Engine:
    """Create an isolated named shared-memory SQLite engine with the auth schema."""
    return create_auth_engine(f"sqlite:///file:test_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(engine: Engine, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.auth_service = service
        app.state.contact_store = ContactStore(engine)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = _make_test_engine(f"unit_{uuid.uuid4().hex}")
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(engine: Engine, clock: FakeClock) -> SessionIssuer:
    return SessionIssuer(SessionStore(engine), TEST_SECRET, clock=clock)


@pytest.fixture
def service(engine: Engine, clock: FakeClock) -> AuthService:
    return build_service(engine, clock=clock)


# ---------------------------------------------------------------------------
# Module-scoped API client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient on the real app backed by an isolated in-memory DB.

    Tests register their own accounts through the API; use a unique email per
    test so module-scoped state never collides.
    """
    engine = _make_test_engine(f"api_{uuid.uuid4().hex}")
    service = build_service(engine)

    app.router.lifespan_context = _patch_lifespan(engine, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    engine.dispose()


@pytest.fixture
def unique_email() -> str:
    return f"user-{uuid.uuid4().hex[:12]}@example.com"
