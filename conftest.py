"""
Pytest configuration and shared fixtures.

Settings are reloaded before any app imports so test env vars are used.
"""

import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("LOG_LEVEL", "WARNING")

# Clear settings cache before any app imports to ensure test env vars are used
from message_storage.config import get_settings
get_settings.cache_clear()


@pytest.fixture
def database_file(tmp_path) -> str:
    """Path to a not-yet-existing SQLite file."""
    return str(tmp_path / "messages.sqlite")


@pytest.fixture
def client_for():
    """Build a test client whose requests open stores on the given path."""
    from message_storage.main import app
    from message_storage.storage import MessageStore, get_store

    def _client(path: str) -> TestClient:
        def override_store():
            store = MessageStore(path)
            try:
                yield store
            finally:
                store.close()

        app.dependency_overrides[get_store] = override_store
        return TestClient(app)

    yield _client

    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, database_file):
    """Test client backed by a fresh database file."""
    with client_for(database_file) as test_client:
        yield test_client
