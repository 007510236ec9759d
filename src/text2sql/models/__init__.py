"""Pydantic models for conversations, schemas and generation requests."""

from src.text2sql.models.conversation import (
    CONVERSATION_ID_PREFIX,
    Conversation,
    Turn,
    generate_conversation_id,
    utc_now,
)
from src.text2sql.models.generation import (
    GenerateRequest,
    GenerateResponse,
    GenerationAttempt,
    GenerationState,
    ParsedOutput,
)
from src.text2sql.models.schema import (
    Column,
    DatabaseDescriptor,
    DatabaseFamily,
    DatabaseType,
    Schema,
    Table,
    databases_match,
    normalize_database_type,
    schemas_match,
)

__all__ = [
    "Column",
    "Table",
    "Schema",
    "DatabaseType",
    "DatabaseFamily",
    "DatabaseDescriptor",
    "normalize_database_type",
    "schemas_match",
    "databases_match",
    "Turn",
    "Conversation",
    "CONVERSATION_ID_PREFIX",
    "generate_conversation_id",
    "utc_now",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationAttempt",
    "GenerationState",
    "ParsedOutput",
]
