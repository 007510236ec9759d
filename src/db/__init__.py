"""Database module for durable conversation persistence."""

from src.db.connection import (
    create_engine_for_url,
    create_session_factory,
    get_async_database_url,
    init_schema,
)
from src.db.models import Base, ConversationRecord, ConversationTurnRecord

__all__ = [
    # Models
    "Base",
    "ConversationRecord",
    "ConversationTurnRecord",
    # Connection
    "create_engine_for_url",
    "create_session_factory",
    "get_async_database_url",
    "init_schema",
]
