"""SQLAlchemy ORM models for the durable conversation store.

One ``conversations`` row per conversation holds the serialized schema,
the database descriptor and timestamps. Each accepted turn is one
append-only ``conversation_turns`` row ordered by ``turn_number``.
Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ConversationRecord(Base):
    """Persistent conversation.

    Attributes:
        id: Conversation token (``conv_...``).
        schema_json: Declared schema serialized as JSON.
        database_type: Backend identifier (mysql, postgresql, sqlite, redis).
        database_version: Free-text backend version, empty when unknown.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-save timestamp; drives idle expiry.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_updated_at", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    schema_json: Mapped[str] = mapped_column(Text, nullable=False)
    database_type: Mapped[str] = mapped_column(String(20), nullable=False)
    database_version: Mapped[str] = mapped_column(
        String(50), nullable=False, default=""
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    turns: Mapped[list["ConversationTurnRecord"]] = relationship(
        "ConversationTurnRecord",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ConversationTurnRecord.turn_number",
    )

    def __repr__(self) -> str:
        return f"<ConversationRecord(id={self.id!r}, database_type={self.database_type!r})>"


class ConversationTurnRecord(Base):
    """One accepted turn.

    Attributes:
        id: UUID primary key.
        conversation_id: FK to ConversationRecord.
        turn_number: 1-based position within the conversation.
        query: Natural-language question.
        statement: Accepted read-only statement.
        explanation: Optional explanation text.
        created_at: ISO8601 timestamp of the turn.
    """

    __tablename__ = "conversation_turns"
    __table_args__ = (
        UniqueConstraint("conversation_id", "turn_number", name="uq_convturn_conversation_number"),
        Index("ix_convturn_conversation_number", "conversation_id", "turn_number"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    turn_number: Mapped[int] = mapped_column(nullable=False)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    statement: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    conversation: Mapped["ConversationRecord"] = relationship(
        "ConversationRecord", back_populates="turns"
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationTurnRecord(conversation_id={self.conversation_id!r}, "
            f"turn_number={self.turn_number})>"
        )
