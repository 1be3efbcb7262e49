"""
Shared test fixtures and configuration.
"""

import os
import tempfile

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("LOCAL_STORAGE_PATH", os.path.join(tempfile.gettempdir(), "chatsync_test_data"))
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")

from fastapi.testclient import TestClient  # noqa: E402

from chatsync.main import app  # noqa: E402
from chatsync.storage import (  # noqa: E402
    LocalStorage, init_session_router, init_user_storage, shutdown_session_router,
)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def session_router(storage):
    """Fresh process-wide stores for one test, torn down afterwards."""
    init_user_storage(storage)
    router = init_session_router(storage)
    yield router
    shutdown_session_router()


@pytest.fixture
def client(session_router):
    return TestClient(app)


@pytest.fixture
def register_user(client):
    """Factory: register + log in a user, returning bearer auth headers."""

    def _register(email: str, password: str = "secret123", name: str | None = None) -> dict:
        body = {"email": email, "password": password}
        if name:
            body["name"] = name
        response = client.post("/auth/register", json=body)
        assert response.status_code == 201, response.text
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _register


@pytest.fixture
def auth_headers(register_user):
    return register_user("alice@example.com")


@pytest.fixture
def other_headers(register_user):
    return register_user("bob@example.com")
