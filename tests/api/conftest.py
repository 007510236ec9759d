"""Pytest fixtures for API tests.

Builds the application around a runtime with a scripted provider and the
in-memory context store. TestClient is entered as a context manager so the
lifespan starts and closes the runtime.
"""

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.cli.config import Text2SQLConfig
from src.services.context_store import MemoryContextStore
from src.services.runtime import Runtime, build_runtime
from tests.helpers import FakeProvider


@pytest.fixture
def api_provider() -> FakeProvider:
    """Provider shared by the runtime; tests append scripted outputs."""
    return FakeProvider()


@pytest.fixture
def make_runtime(api_provider: FakeProvider) -> Callable[..., Runtime]:
    def _make(config: Text2SQLConfig | None = None) -> Runtime:
        return build_runtime(
            config or Text2SQLConfig(),
            provider=api_provider,
            store=MemoryContextStore(),
        )

    return _make


@pytest.fixture
def make_client(make_runtime) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for started TestClients; every client is closed on teardown."""
    clients: list[TestClient] = []

    def _make(config: Text2SQLConfig | None = None) -> TestClient:
        config = config or Text2SQLConfig()
        client = TestClient(create_app(config, runtime=make_runtime(config)))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    """Client with auth disabled and the default rate limit."""
    return make_client()


@pytest.fixture
def generate_body() -> dict:
    """Minimal request body that starts a MySQL conversation."""
    return {
        "query": "list all users",
        "schema": {
            "tables": [
                {
                    "name": "users",
                    "columns": [
                        {"name": "id", "type": "int"},
                        {"name": "name", "type": "varchar(64)"},
                    ],
                }
            ]
        },
        "database": {"type": "mysql", "version": "8.0"},
    }
