"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- A scripted fake LLM provider
- Sample schemas and database descriptors
- In-memory and file-based SQLite context stores
"""

import os
from pathlib import Path

import pytest

from src.services.context_store import MemoryContextStore
from src.text2sql.models import (
    Column,
    Conversation,
    DatabaseDescriptor,
    DatabaseType,
    Schema,
    Table,
)
from tests.helpers import FakeProvider

PROJECT_ROOT = Path(__file__).parent.parent


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Skip Conditions
# ============================================================================

requires_anthropic_key = pytest.mark.skipif(
    not os.environ.get("ANTHROPIC_API_KEY"),
    reason="ANTHROPIC_API_KEY not set"
)


# ============================================================================
# Environment isolation
# ============================================================================


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep user config files and TEXT2SQL_* variables out of tests."""
    for name in list(os.environ):
        if name.startswith("TEXT2SQL_") or name == "API_KEY":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TEXT2SQL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


# ============================================================================
# Fake Provider
# ============================================================================


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def users_schema() -> Schema:
    return Schema(
        tables=[
            Table(
                name="users",
                columns=[
                    Column(name="id", type="int", comment="primary key"),
                    Column(name="name", type="varchar(64)"),
                    Column(name="age", type="int"),
                ],
            ),
            Table(
                name="orders",
                columns=[
                    Column(name="id", type="int"),
                    Column(name="user_id", type="int"),
                    Column(name="total", type="decimal(10,2)"),
                ],
            ),
        ]
    )


@pytest.fixture
def mysql_db() -> DatabaseDescriptor:
    return DatabaseDescriptor(type=DatabaseType.mysql, version="8.0")


@pytest.fixture
def redis_db() -> DatabaseDescriptor:
    return DatabaseDescriptor(type=DatabaseType.redis, version="7.2")


@pytest.fixture
def conversation(users_schema, mysql_db) -> Conversation:
    return Conversation.start(users_schema, mysql_db)


# ============================================================================
# Stores
# ============================================================================


@pytest.fixture
def memory_store() -> MemoryContextStore:
    return MemoryContextStore()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """File-based SQLite URL in a temporary directory."""
    return f"sqlite+aiosqlite:///{tmp_path / 'conversations.db'}"
