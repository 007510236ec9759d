"""Conversation state models.

A Conversation is owned by a context store. The generation service only
holds a transient copy for the duration of one request, appends a Turn on
success and hands it back to the store.
"""

import secrets
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from src.text2sql.models.schema import DatabaseDescriptor, Schema

CONVERSATION_ID_PREFIX = "conv_"


def generate_conversation_id() -> str:
    """Generate an opaque conversation token.

    16 random bytes (128 bits), URL-safe base64 without padding.
    """
    return CONVERSATION_ID_PREFIX + secrets.token_urlsafe(16)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Turn(BaseModel):
    """One accepted exchange within a conversation.

    Attributes:
        query: The user's natural-language question.
        statement: The validated, read-only statement or command block.
        explanation: Optional explanation extracted from model output.
        timestamp: When the turn was accepted.
    """

    query: str
    statement: str
    explanation: str = ""
    timestamp: datetime = Field(default_factory=utc_now)


class Conversation(BaseModel):
    """A sequence of turns sharing one schema and database identity.

    Attributes:
        conversation_id: Opaque token addressing the conversation.
        db_schema: Declared schema, immutable once the conversation exists.
        database: Declared backend, immutable once the conversation exists.
        history: Append-only list of accepted turns.
        created_at: Creation time.
        updated_at: Time of the last save; drives idle expiry.
    """

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str
    db_schema: Schema = Field(..., alias="schema")
    database: DatabaseDescriptor
    history: list[Turn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Turns already persisted when this copy was loaded or last saved
    _persisted_turns: int = PrivateAttr(default=0)

    @classmethod
    def start(cls, db_schema: Schema, database: DatabaseDescriptor) -> "Conversation":
        """Create a fresh conversation with a newly generated id."""
        now = utc_now()
        return cls(
            conversation_id=generate_conversation_id(),
            db_schema=db_schema,
            database=database,
            history=[],
            created_at=now,
            updated_at=now,
        )

    @property
    def last_turn(self) -> Turn | None:
        return self.history[-1] if self.history else None

    def append_turn(self, query: str, statement: str, explanation: str = "") -> Turn:
        """Append an accepted turn and return it."""
        turn = Turn(query=query, statement=statement, explanation=explanation)
        self.history.append(turn)
        return turn

    def unsaved_turns(self) -> list[Turn]:
        """Turns appended since this copy was loaded or last saved."""
        return self.history[self._persisted_turns:]

    def mark_persisted(self) -> None:
        """Record that every turn in ``history`` is now stored."""
        self._persisted_turns = len(self.history)

    def recent_turns(self, limit: int) -> list[Turn]:
        """Return up to ``limit`` most recent turns, oldest first."""
        if limit <= 0:
            return []
        return self.history[-limit:]

    def is_idle(self, max_age_seconds: float, now: datetime | None = None) -> bool:
        """True when the last update is older than ``max_age_seconds``."""
        now = now or utc_now()
        return (now - self.updated_at).total_seconds() > max_age_seconds
