"""
tests/conftest.py -- Shared test fixtures for Music Library API tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for auth + catalog
  - _patch_lifespan(): wires test state into app.state, bypassing real startup
  - stores / client: one isolated app state per test function
  - make_account: factory that creates a user and logs it in through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any core/auth import so get_settings() sees it:
  DEBUG=true             auto-generates SECRET_KEY instead of raising
  BCRYPT_ROUNDS=4        keeps password hashing fast
  LOGIN_RATE_LIMIT       high enough that the per-IP limit only fires in
                         tests that lower it
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from types import SimpleNamespace

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.attempts import LoginAttemptLimiter
from auth.models import ROLE_ADMIN, User
from auth.sessions import SessionRegistry
from auth.store import CredentialStore
from auth.tokens import TokenService, hash_password
from catalog.store import CatalogStore
from core.config import get_settings

DEFAULT_PASSWORD = "Secur3Pass"


def memory_url(name: str) -> str:
    """Named shared-memory SQLite URL, unique per name."""
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[CredentialStore, CatalogStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB names so tests never
                   share state.
    """
    credentials = CredentialStore(db_url=memory_url(f"test_auth_{db_suffix}"))
    catalog = CatalogStore(db_url=memory_url(f"test_catalog_{db_suffix}"))
    return credentials, catalog


def _patch_lifespan(state: SimpleNamespace):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel, exactly like production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credentials = state.credentials
        app.state.catalog = state.catalog
        app.state.tokens = state.tokens
        app.state.attempts = state.attempts
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[SimpleNamespace, None, None]:
    """Fresh stores, session registry, token service, and attempt limiter."""
    credentials, catalog = _make_test_stores(uuid.uuid4().hex)
    registry = SessionRegistry()
    settings = get_settings()
    state = SimpleNamespace(
        credentials=credentials,
        catalog=catalog,
        registry=registry,
        tokens=TokenService(settings.secret_key, registry, ttl_seconds=3600),
        attempts=LoginAttemptLimiter(max_attempts=5, window_seconds=900),
    )
    yield state
    credentials.close()
    catalog.close()


@pytest.fixture
def client(stores: SimpleNamespace) -> Generator[TestClient, None, None]:
    """TestClient over the real app with isolated state from `stores`."""
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(stores)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@dataclass
class Account:
    user_id: str
    organization_id: str
    email: str
    password: str
    role: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def login(client: TestClient, email: str, password: str = DEFAULT_PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def make_account(client: TestClient, stores: SimpleNamespace) -> Callable[..., Account]:
    """Factory: create a user and log it in through POST /login.

    make_account()                                -> Admin of a new organization (via POST /signup)
    make_account(role="Editor", organization_id=) -> Editor added straight to the store
    """

    def _make(role: str = ROLE_ADMIN, organization_id: str | None = None, email: str | None = None) -> Account:
        email = email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com"
        if role == ROLE_ADMIN:
            resp = client.post(
                "/signup",
                json={
                    "email": email,
                    "password": DEFAULT_PASSWORD,
                    "organization_name": f"Org {uuid.uuid4().hex[:8]}",
                },
            )
            assert resp.status_code == 201, resp.text
            user = stores.credentials.find_user_by_email(email)
        else:
            assert organization_id is not None, "non-admin accounts need an organization_id"
            user = stores.credentials.create_user(
                User(
                    email=email,
                    role=role,
                    organization_id=organization_id,
                    hashed_password=hash_password(DEFAULT_PASSWORD),
                )
            )
        resp = login(client, email)
        assert resp.status_code == 200, resp.text
        return Account(
            user_id=user.id,
            organization_id=user.organization_id,
            email=email,
            password=DEFAULT_PASSWORD,
            role=role,
            token=resp.json()["data"]["token"],
        )

    return _make
