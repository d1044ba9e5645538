"""Global pytest fixtures."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from taverns.api.deps import get_current_user, get_db, get_http_client, get_llm
from taverns.main import app
from taverns.workers.celery_app import celery_app

TEST_USER = {
    "id": uuid.UUID("123e4567-e89b-12d3-a456-426614174000"),
    "email": "test@example.com",
    "role": "USER",
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def setup_celery():
    """Configure Celery to use memory broker for tests."""
    celery_app.conf.update(
        broker_url="memory://",
        result_backend="memory://",
        task_always_eager=True,  # Run tasks synchronously in tests
        task_eager_propagates=True,
    )
    yield


@pytest.fixture
def db_session() -> MagicMock:
    """Mock database session."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock(return_value=None)
    session.refresh = AsyncMock()
    session.add = MagicMock()
    # ``async with db.begin_nested():`` needs an async context manager.
    session.begin_nested = MagicMock(return_value=AsyncMock())
    return session


@pytest.fixture
def http_client() -> httpx.AsyncClient:
    """Outbound client that fails any request a test did not stub."""

    def _unexpected(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected outbound request: {request.url}")

    return httpx.AsyncClient(transport=httpx.MockTransport(_unexpected))


@pytest.fixture
def client(db_session: MagicMock, http_client: httpx.AsyncClient) -> TestClient:
    """Synchronous TestClient with mocked DB, auth, LLM and outbound HTTP."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    app.dependency_overrides[get_llm] = lambda: None
    app.dependency_overrides[get_http_client] = lambda: http_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
