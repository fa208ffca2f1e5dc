"""
tests/conftest.py -- Shared test fixtures for CarVault tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for accounts and cars
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient against the real app with fresh stores per test
  - register_and_login(): signup + login helper returning (token, user_id)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process;
a uuid suffix keeps tests from seeing each other's rows.

Environment must be set before any api/auth/core import so get_settings()
auto-generates SECRET_KEY (DEBUG), hashes cheaply (BCRYPT_ROUNDS) and does
not rate-limit the many logins the suite performs.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import IdentityService
from auth.store import UserStore
from auth.tokens import TokenSigner
from cars.service import CarService
from cars.store import CarStore
from core.config import get_settings
from storage.blobs import BlobStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[UserStore, CarStore]:
    """Create isolated named shared-memory SQLite stores for one test."""
    suffix = uuid.uuid4().hex
    user_store = UserStore(f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")
    car_store = CarStore(f"sqlite:///file:test_cars_{suffix}?mode=memory&cache=shared&uri=true")
    return user_store, car_store


def _patch_lifespan(user_store: UserStore, car_store: CarStore, upload_dir: Path):
    """Return an async context manager that replaces the real lifespan.

    Builds the same collaborators the production lifespan builds, but on
    the test stores and a temporary upload directory.
    """
    settings = get_settings()

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.car_store = car_store
        app.state.blobs = BlobStore(upload_dir)
        app.state.signer = TokenSigner(settings.secret_key, settings.token_expire_seconds)
        app.state.identity = IdentityService(user_store, app.state.signer, settings.bcrypt_rounds)
        app.state.cars = CarService(
            car_store,
            app.state.blobs,
            max_files=settings.max_upload_files,
            max_file_bytes=settings.max_upload_bytes,
        )
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def api_client(upload_dir: Path) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with fresh, isolated stores.

    The real route handlers, token gate, and exception handlers all run;
    only the collaborators on app.state are swapped for test instances.
    """
    user_store, car_store = _make_test_stores()
    app.router.lifespan_context = _patch_lifespan(user_store, car_store, upload_dir)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
    car_store.close()


@pytest.fixture
def signer() -> TokenSigner:
    """A signer using the same secret as the app under test."""
    settings = get_settings()
    return TokenSigner(settings.secret_key, settings.token_expire_seconds)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def register_and_login(client: TestClient, username: str, password: str) -> tuple[str, str]:
    """Sign up and log in through the HTTP API. Returns (token, user_id)."""
    resp = client.post("/api/users/signup", json={"username": username, "password": password})
    assert resp.status_code == 201, f"signup failed: {resp.status_code} {resp.text}"
    user_id = resp.json()["user"]["id"]
    resp = client.post("/api/users/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.status_code} {resp.text}"
    return resp.json()["token"], user_id


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
