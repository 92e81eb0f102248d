# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

os.environ.setdefault("PYTEST_RUNNING", "true")

from chorus_courier.models.response import BackendResponse
from chorus_courier.models.session import Session
from chorus_courier.schemas.client import ClientDescriptor, ClientRecord
from chorus_courier.services.backend import BackendClient
from chorus_courier.services.keystore import LocalKeyStore

TEST_BACKEND_URL = "https://backend.test"
TEST_COOKIE_LABEL = "courier-test-cookie"


@pytest.fixture()
def session() -> Session:
    return Session(
        backend_url=TEST_BACKEND_URL,
        client_info=ClientDescriptor(
            type="permanent",
            client_class="desktop",
            model="Chorus Courier",
            label="pytest",
            cookie=TEST_COOKIE_LABEL,
        ),
    )


@pytest.fixture()
def ready_session(session: Session) -> Session:
    session.access_token = "token-abc"
    session.client = ClientRecord(id="client-1")
    session.myself = {"id": "user-me", "name": "Me"}
    return session


@pytest.fixture()
def key_store() -> LocalKeyStore:
    return LocalKeyStore(batch_size=3)


@pytest.fixture()
def mock_backend() -> AsyncMock:
    backend = AsyncMock(spec=BackendClient)
    backend.remove_cookies.return_value = BackendResponse(200)
    return backend


@pytest.fixture()
def make_response() -> Callable[..., BackendResponse]:
    def _make(status: int = 200, body: Any = None) -> BackendResponse:
        return BackendResponse(status=status, body=body)

    return _make
