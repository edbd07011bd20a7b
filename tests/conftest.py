"""
Pytest configuration for API key tests.
Every test gets its own SQLite file so no state leaks between tests.
"""

import os

# Keep the developer's .env from switching auth off under the tests
os.environ["API_AUTH_DISABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from apps.api.settings import APIConfig
from auth.key_manager import APIKeyManager
from auth.key_store import APIKeyStore
from storage.relational.database import DatabaseConfig, DatabaseManager


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(DatabaseConfig(f"sqlite:///{tmp_path / 'test.db'}"))
    yield manager
    manager.dispose()


@pytest.fixture
def store(db):
    store = APIKeyStore(db)
    store.ensure_schema()
    return store


@pytest.fixture
def key_manager(store):
    return APIKeyManager(store)


@pytest.fixture
def make_client(key_manager):
    """Build a TestClient around a fresh app; auth is on unless asked otherwise."""
    clients = []

    def _make(auth_disabled: bool = False, rate_limit_max_requests: int = 0, **kwargs):
        config = APIConfig(
            auth_disabled=auth_disabled,
            rate_limit_max_requests=rate_limit_max_requests,
            log_dir="",
            cors_origins=[],
            **kwargs,
        )
        app = create_app(config, key_manager=key_manager)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def admin_key(key_manager):
    return key_manager.issue("Admin", ["read", "write", "admin"])
