"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files; pytest discovers this by convention.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from guide_bookings.deps import get_current_user, get_users_client
from guide_bookings.errors import register_error_handlers
from guide_bookings.routers.booking import router
from guide_bookings.settings import TORTOISE_MODULES

from .factories import make_admin, make_customer, make_guide_user

ROUTER_PATH = "guide_bookings.routers.booking"

# ---------------------------------------------------------------------------
# Default no-op mocks to prevent real HTTP / Redis calls in tests
# ---------------------------------------------------------------------------


def _noop_users_client():
    mock = MagicMock()
    mock.get_by_ids = AsyncMock(return_value=[])
    return mock


@pytest.fixture(autouse=True)
def slots_cache():
    """Replace the Redis-backed slots cache with mocks (always a miss)."""
    cache = MagicMock(
        get=AsyncMock(return_value=None),
        set=AsyncMock(),
        invalidate=AsyncMock(),
    )
    with patch(f"{ROUTER_PATH}.slots_cache", cache):
        yield cache


# ---------------------------------------------------------------------------
# App builder used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(current_user, users_client=None) -> FastAPI:
    """
    Fresh FastAPI app with the identity dependency overridden to return
    `current_user` unconditionally.

    Pass `users_client` to inject a custom mock. Defaults to a no-op mock that
    returns an empty list, avoiding real HTTP calls.
    """
    app = FastAPI()
    app.include_router(router)
    register_error_handlers(app)

    async def _user():
        return current_user

    app.dependency_overrides[get_current_user] = _user

    uc = users_client if users_client is not None else _noop_users_client()
    app.dependency_overrides[get_users_client] = lambda: uc

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client():
    return TestClient(build_app(make_customer()), raise_server_exceptions=True)


@pytest.fixture()
def guide_client():
    return TestClient(build_app(make_guide_user()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    Bare app with NO dependency overrides.
    Use this when you want the real identity dep to run so you can assert 401/422.
    """
    app = FastAPI()
    app.include_router(router)
    register_error_handlers(app)
    return app


@pytest.fixture()
def client_factory():
    def _make(current_user, users_client=None) -> TestClient:
        return TestClient(
            build_app(current_user, users_client=users_client),
            raise_server_exceptions=True,
        )

    return _make


# ---------------------------------------------------------------------------
# Database: in-memory SQLite through Tortoise
# ---------------------------------------------------------------------------


@pytest.fixture()
def db():
    """
    Returns a runner: db(scenario) initialises a fresh in-memory database,
    awaits `scenario()` and tears the database down again. Everything touching
    the ORM must happen inside the scenario (one event loop per test).
    """

    def _run(scenario):
        async def _main():
            await Tortoise.init(db_url="sqlite://:memory:", modules=TORTOISE_MODULES)
            await Tortoise.generate_schemas()
            try:
                return await scenario()
            finally:
                await connections.close_all()

        return asyncio.run(_main())

    return _run
