"""Tests for Runtime wiring and lifecycle."""

from datetime import timedelta

import pytest

from src.cli.config import (
    ContextStoreConfig,
    GenerationConfig,
    LLMConfig,
    Text2SQLConfig,
)
from src.services.context_store import MemoryContextStore
from src.services.runtime import build_runtime, build_store
from src.services.sql_context_store import SQLContextStore
from src.text2sql.models import GenerateRequest
from tests.helpers import FakeProvider


class TestBuildStore:
    def test_memory_backend(self):
        store = build_store(ContextStoreConfig(backend="memory", max_age_hours=2))

        assert isinstance(store, MemoryContextStore)
        assert store.sweeper.max_age == timedelta(hours=2)

    def test_sqlite_backend_uses_data_dir(self, tmp_path):
        store = build_store(ContextStoreConfig(backend="sqlite"))

        assert isinstance(store, SQLContextStore)
        assert str(tmp_path / "data" / "conversations.db") in store._database_url

    def test_sql_backend_uses_url(self, sqlite_url):
        store = build_store(ContextStoreConfig(backend="sql", database_url=sqlite_url))

        assert isinstance(store, SQLContextStore)
        assert store._database_url == sqlite_url


class TestRuntime:
    def test_build_uses_config_provider(self):
        runtime = build_runtime(Text2SQLConfig(llm=LLMConfig(provider="ollama")))

        assert runtime.provider.name == "ollama"
        assert isinstance(runtime.store, MemoryContextStore)
        assert not runtime.started

    def test_request_timeout_from_config(self):
        config = Text2SQLConfig(generation=GenerationConfig(request_timeout_seconds=12))

        runtime = build_runtime(config, provider=FakeProvider())

        assert runtime.request_timeout == 12

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_closes(self):
        provider = FakeProvider()
        runtime = build_runtime(Text2SQLConfig(), provider=provider)

        async with runtime:
            assert runtime.started
            assert runtime.store.sweeper.running

        assert not runtime.started
        assert not runtime.store.sweeper.running
        assert provider.closed

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        runtime = build_runtime(Text2SQLConfig(), provider=FakeProvider())

        await runtime.start()
        await runtime.start()

        assert runtime.started
        await runtime.close()

    @pytest.mark.asyncio
    async def test_service_uses_generation_settings(self, users_schema, mysql_db):
        provider = FakeProvider(["DELETE FROM users", "DROP TABLE users", "SELECT 1"])
        config = Text2SQLConfig(generation=GenerationConfig(max_attempts=3))

        async with build_runtime(config, provider=provider) as runtime:
            response = await runtime.service.generate(
                GenerateRequest(query="q", db_schema=users_schema, database=mysql_db)
            )

        assert response.statement == "SELECT 1"
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_sqlite_runtime_persists_across_restarts(self, sqlite_url, users_schema, mysql_db):
        config = Text2SQLConfig(
            context_store=ContextStoreConfig(backend="sql", database_url=sqlite_url)
        )

        async with build_runtime(config, provider=FakeProvider(["SELECT * FROM users"])) as runtime:
            response = await runtime.service.generate(
                GenerateRequest(query="q", db_schema=users_schema, database=mysql_db)
            )

        async with build_runtime(config, provider=FakeProvider()) as runtime:
            stored = await runtime.store.get(response.conversation_id)

        assert stored.history[0].statement == "SELECT * FROM users"
