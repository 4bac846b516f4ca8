"""
tests/conftest.py -- Shared test fixtures for the inventory API integration tests.

This module provides:
  - make_test_stores(): isolated in-memory DBs for users, audit and inventory
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: an ApiContext with a TestClient and one account per role
  - auth_headers(): Authorization header for a session token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from audit.store import AuditStore
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import create_session_token, hash_password
from inventory.store import InventoryStore

TEST_PASSWORD = "testpass123"  # noqa: S105 # nosec B105 -- test fixture credential


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[UserStore, AuditStore, InventoryStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state (e.g. the module name).
    """

    def url(kind: str) -> str:
        return f"sqlite:///file:test_{kind}_{db_suffix}?mode=memory&cache=shared&uri=true"

    return UserStore(url("users")), AuditStore(url("audit")), InventoryStore(url("inventory"))


def _patch_lifespan(user_store: UserStore, audit_store: AuditStore, inventory_store: InventoryStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.audit_store = audit_store
        app.state.inventory_store = inventory_store
        yield

    return test_lifespan


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass
class ApiContext:
    """Everything an integration test needs: the client, the stores, and one account per role.

    ids / tokens are keyed by role name ("ADMIN", "MANAGER", "VIEWER"); the
    tokens are full session tokens valid for an hour.
    """

    client: TestClient
    user_store: UserStore
    audit_store: AuditStore
    inventory_store: InventoryStore
    ids: dict[str, int] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(self, role: str) -> dict[str, str]:
        return auth_headers(self.tokens[role])

    def email(self, role: str) -> str:
        return f"{role.lower()}@inventory.test"


# ---------------------------------------------------------------------------
# Module-scoped fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores. One
    user per role is created before the client starts, all with
    TEST_PASSWORD and MFA disabled.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, audit_store, inventory_store = make_test_stores(suffix)

    ids: dict[str, int] = {}
    tokens: dict[str, str] = {}
    hashed = hash_password(TEST_PASSWORD)
    for role in Role:
        uid = user_store.create_user(
            User(
                email=f"{role.value.lower()}@inventory.test",
                name=f"Test {role.value.title()}",
                role=role.value,
                password_hash=hashed,
            )
        )
        ids[role.value] = uid
        tokens[role.value] = create_session_token(uid, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, audit_store, inventory_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            user_store=user_store,
            audit_store=audit_store,
            inventory_store=inventory_store,
            ids=ids,
            tokens=tokens,
        )

    inventory_store.close()
    audit_store.close()
    user_store.close()
