"""
tests/conftest.py -- Shared test fixtures for PasswordForge integration tests.

This module provides:
  - FakeClock: settable clock for deterministic TOTP tests
  - _make_test_stores(): creates isolated in-memory DBs for accounts + vault
  - _patch_lifespan(): wires test handles into app.state, bypassing real startup
  - enroll_and_login(): signs an account up and returns a valid session token
  - api_client / web_client: TestClient fixtures

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

DEBUG and RATE_LIMIT_ENABLED must be set before any auth/api import so
get_settings() auto-generates SECRET_KEY and the shared limiter starts
disabled (module-scoped clients log in many times from one address).
"""

from __future__ import annotations

import os
import random
import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pyotp
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.protocol import AuthContext
from auth.store import AccountStore
from core.tables import get_table
from core.transform import TransformEngine
from vault.store import VaultStore

# Mount the web router once; guard against double inclusion if conftest is
# imported more than once in the same session.
if not any(getattr(r, "path", None) == "/vault/{entry_id}/delete" for r in app.routes):
    from web.routes import router as web_router

    app.include_router(web_router, tags=["Web UI"])


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


@dataclass
class FakeClock:
    """Callable clock fixed five seconds into a TOTP step."""

    now: float = 1_700_000_015.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, VaultStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so parallel test
                   modules don't share state (e.g. 'api', 'web').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    vault_url = f"sqlite:///file:test_vault_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=auth_url), VaultStore(db_url=vault_url)


def _patch_lifespan(ctx: AuthContext, vault: VaultStore):
    """Return an async context manager that replaces the real lifespan.

    Uses the classic table with a seeded RNG so the engine is deterministic
    across a test module.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = TransformEngine(get_table("classic"), rng=random.Random(1234))
        app.state.auth = ctx
        app.state.vault = vault
        yield

    return test_lifespan


def current_code(secret: str) -> str:
    return pyotp.TOTP(secret).at(time.time())


def wrong_code(secret: str) -> str:
    """A six-digit code that matches no step within two of now."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    taken = {totp.at(now + k * 30) for k in range(-2, 3)}
    return next(f"{n:06d}" for n in range(len(taken) + 1) if f"{n:06d}" not in taken)


def enroll_and_login(client: TestClient, email: str) -> tuple[str, str]:
    """Sign up via the API and log in with the current code. Returns (secret, token)."""
    resp = client.post("/api/v1/auth/signup", json={"email": email})
    assert resp.status_code == 201, resp.text
    secret = resp.json()["secret"]
    resp = client.post("/api/v1/auth/login", json={"email": email, "code": current_code(secret)})
    assert resp.status_code == 200, resp.text
    return secret, resp.json()["access_token"]


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """TestClient over the real app with isolated in-memory stores.

    The auth context uses the real wall clock so codes from pyotp.TOTP.now()
    validate; the +/-1 step window absorbs a boundary crossing mid-test.
    """
    accounts, vault = _make_test_stores("api")
    ctx = AuthContext(store=accounts)
    app.router.lifespan_context = _patch_lifespan(ctx, vault)

    # TrustedHostMiddleware admits localhost only.
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client

    accounts.close()
    vault.close()


@pytest.fixture(scope="module")
def web_client() -> Generator[TestClient, None, None]:
    """TestClient for web routes with follow_redirects=False.

    Redirect assertions need the 302 and its Location header, which a
    following client would hide.
    """
    accounts, vault = _make_test_stores("web")
    ctx = AuthContext(store=accounts)
    app.router.lifespan_context = _patch_lifespan(ctx, vault)

    with TestClient(
        app, base_url="http://localhost", follow_redirects=False, raise_server_exceptions=True
    ) as client:
        yield client

    accounts.close()
    vault.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_ctx(clock: FakeClock) -> Generator[AuthContext, None, None]:
    """Function-scoped AuthContext over a private in-memory store and a fake clock."""
    store = AccountStore("sqlite:///:memory:")
    ctx = AuthContext(store=store, issuer="PasswordForge", clock=clock)
    yield ctx
    ctx.close()


@pytest.fixture
def totp_now():
    """Callable: secret -> current six-digit code."""
    return current_code


@pytest.fixture
def totp_wrong():
    """Callable: secret -> a code guaranteed not to validate right now."""
    return wrong_code


@pytest.fixture
def sign_up_and_log_in():
    """Callable: (client, email) -> (secret, token). See enroll_and_login()."""
    return enroll_and_login
