"""Tests for conversation, schema and request models."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.text2sql.models import (
    CONVERSATION_ID_PREFIX,
    Column,
    Conversation,
    DatabaseDescriptor,
    DatabaseFamily,
    DatabaseType,
    GenerateRequest,
    Schema,
    Table,
    databases_match,
    generate_conversation_id,
    schemas_match,
    utc_now,
)


class TestDatabaseDescriptor:
    """Tests for backend identifier normalization."""

    def test_aliases_normalize(self):
        assert DatabaseDescriptor(type="Postgres").type is DatabaseType.postgresql
        assert DatabaseDescriptor(type=" MySQL ").type is DatabaseType.mysql

    def test_blank_type_is_empty(self):
        assert DatabaseDescriptor(type="").is_empty
        assert DatabaseDescriptor().is_empty

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            DatabaseDescriptor(type="oracle")

    def test_none_version_becomes_empty(self):
        assert DatabaseDescriptor(type="redis", version=None).version == ""

    def test_family(self):
        assert DatabaseType.redis.family is DatabaseFamily.KEY_VALUE
        assert DatabaseType.sqlite.family is DatabaseFamily.RELATIONAL


class TestSchemaMatching:
    """Shallow structural equality used for conversation identity."""

    def test_identical_schemas_match(self, users_schema):
        assert schemas_match(users_schema, users_schema.model_copy(deep=True))

    def test_column_types_are_not_compared(self, users_schema):
        changed = users_schema.model_copy(deep=True)
        changed.tables[0].columns[1] = Column(name="full_name", type="text")
        assert schemas_match(users_schema, changed)

    def test_table_name_differs(self, users_schema):
        changed = users_schema.model_copy(deep=True)
        changed.tables[0].name = "accounts"
        assert not schemas_match(users_schema, changed)

    def test_column_count_differs(self, users_schema):
        changed = users_schema.model_copy(deep=True)
        changed.tables[1].columns.append(Column(name="created_at"))
        assert not schemas_match(users_schema, changed)

    def test_table_count_differs(self, users_schema):
        shorter = Schema(tables=users_schema.tables[:1])
        assert not schemas_match(users_schema, shorter)

    def test_database_version_compared(self):
        a = DatabaseDescriptor(type="mysql", version="8.0")
        assert databases_match(a, DatabaseDescriptor(type="mysql", version="8.0"))
        assert not databases_match(a, DatabaseDescriptor(type="mysql", version="5.7"))
        assert not databases_match(a, DatabaseDescriptor(type="postgresql", version="8.0"))


class TestConversation:
    """Tests for conversation identity and history."""

    def test_generated_ids_are_distinct(self):
        ids = {generate_conversation_id() for _ in range(200)}
        assert len(ids) == 200
        assert all(i.startswith(CONVERSATION_ID_PREFIX) for i in ids)

    def test_id_carries_128_bits(self):
        token = generate_conversation_id()[len(CONVERSATION_ID_PREFIX):]
        # 16 bytes, URL-safe base64 without padding
        assert len(token) == 22

    def test_start_sets_timestamps(self, users_schema, mysql_db):
        conv = Conversation.start(users_schema, mysql_db)
        assert conv.history == []
        assert conv.created_at == conv.updated_at

    def test_append_and_recent_turns(self, conversation):
        for i in range(5):
            conversation.append_turn(f"q{i}", f"SELECT {i}")
        assert conversation.last_turn.statement == "SELECT 4"
        assert [t.query for t in conversation.recent_turns(3)] == ["q2", "q3", "q4"]
        assert conversation.recent_turns(0) == []

    def test_is_idle(self, conversation):
        later = utc_now() + timedelta(hours=2)
        assert conversation.is_idle(3600, now=later)
        assert not conversation.is_idle(3600)

    def test_schema_alias_round_trip(self, conversation):
        data = conversation.model_dump(mode="json", by_alias=True)
        assert "schema" in data
        restored = Conversation.model_validate(data)
        assert restored.db_schema == conversation.db_schema


class TestGenerateRequest:
    """Tests for request validation."""

    def test_blank_query_rejected(self):
        with pytest.raises(ValidationError):
            GenerateRequest(query="   ")

    def test_schema_alias_and_previous_sql_alias(self):
        req = GenerateRequest.model_validate(
            {
                "query": "older users",
                "schema": {"tables": [{"name": "users", "columns": [{"name": "id"}]}]},
                "database": {"type": "mysql"},
                "previous_sql": "SELECT * FROM users",
            }
        )
        assert req.has_schema
        assert req.has_database
        assert req.previous_statement == "SELECT * FROM users"

    def test_empty_schema_is_absent(self):
        req = GenerateRequest(query="q", db_schema=Schema(tables=[]), database=DatabaseDescriptor())
        assert not req.has_schema
        assert not req.has_database

    def test_table_requires_name(self):
        with pytest.raises(ValidationError):
            Table(name="")
