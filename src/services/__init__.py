"""Service layer: conversation storage and runtime wiring."""

from src.services.context_store import (
    ContextStore,
    ExpirySweeper,
    KeyedLocks,
    MemoryContextStore,
)
from src.services.sql_context_store import SQLContextStore

__all__ = [
    "ContextStore",
    "ExpirySweeper",
    "KeyedLocks",
    "MemoryContextStore",
    "SQLContextStore",
]
