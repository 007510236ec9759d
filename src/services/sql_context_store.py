"""Durable conversation store backed by SQLAlchemy (async).

Defaults to SQLite through aiosqlite; any async SQLAlchemy URL works.
Turns are append-only: ``save`` upserts the conversation row and inserts
only the turns whose number is not yet persisted.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.db.connection import create_engine_for_url, create_session_factory, init_schema
from src.db.models import ConversationRecord, ConversationTurnRecord
from src.errors import ConversationNotFoundError
from src.services.context_store import DEFAULT_SWEEP_BATCH_SIZE, ContextStore
from src.text2sql.models.conversation import Conversation, Turn
from src.text2sql.models.schema import DatabaseDescriptor, Schema

logger = logging.getLogger(__name__)


def to_iso(value: datetime) -> str:
    """UTC ISO8601 with fixed microsecond precision so strings sort by time."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SQLContextStore(ContextStore):
    """ContextStore persisted in the ``conversations`` and
    ``conversation_turns`` tables.

    Args:
        database_url: Async SQLAlchemy URL (sqlite:/// is upgraded to aiosqlite).
        cleanup_interval: Seconds between sweeps; None disables the sweeper.
        max_age: Idle age after which the sweeper removes a conversation.
        timeout: Seconds allowed per database operation.
        engine: Pre-built engine; the store disposes it on close.
    """

    def __init__(
        self,
        database_url: str,
        cleanup_interval: float | None = None,
        max_age: timedelta | None = None,
        timeout: float | None = None,
        sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
        engine: AsyncEngine | None = None,
    ) -> None:
        super().__init__(
            cleanup_interval=cleanup_interval,
            max_age=max_age,
            timeout=timeout,
            sweep_batch_size=sweep_batch_size,
        )
        self._database_url = database_url
        self._engine = engine
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def _open(self) -> None:
        if self._session_factory is not None:
            return
        if self._engine is None:
            self._engine = create_engine_for_url(self._database_url)
        await init_schema(self._engine)
        self._session_factory = create_session_factory(self._engine)
        logger.info("SQL context store ready")

    async def _release(self) -> None:
        self._session_factory = None
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("SQLContextStore used before start()")
        return self._session_factory

    async def get(self, conversation_id: str) -> Conversation:
        return await self._bounded(self._load(conversation_id), "get")

    async def _load(self, conversation_id: str) -> Conversation:
        async with self._sessions()() as session:
            record = await session.get(ConversationRecord, conversation_id)
            if record is None:
                raise ConversationNotFoundError(conversation_id)
            result = await session.execute(
                select(ConversationTurnRecord)
                .where(ConversationTurnRecord.conversation_id == conversation_id)
                .order_by(ConversationTurnRecord.turn_number)
            )
            turns = result.scalars().all()

        conversation = Conversation(
            conversation_id=record.id,
            db_schema=Schema.model_validate_json(record.schema_json),
            database=DatabaseDescriptor(
                type=record.database_type,
                version=record.database_version,
            ),
            history=[
                Turn(
                    query=turn.query,
                    statement=turn.statement,
                    explanation=turn.explanation,
                    timestamp=from_iso(turn.created_at),
                )
                for turn in turns
            ],
            created_at=from_iso(record.created_at),
            updated_at=from_iso(record.updated_at),
        )
        conversation.mark_persisted()
        return conversation

    async def _write(self, conversation: Conversation) -> None:
        conversation_id = conversation.conversation_id
        async with self._sessions()() as session:
            async with session.begin():
                record = await session.get(ConversationRecord, conversation_id)
                if record is None:
                    record = ConversationRecord(
                        id=conversation_id,
                        schema_json=conversation.db_schema.model_dump_json(),
                        database_type=conversation.database.type.value,
                        database_version=conversation.database.version,
                        created_at=to_iso(conversation.created_at),
                        updated_at=to_iso(conversation.updated_at),
                    )
                    session.add(record)
                    new_turns = conversation.history
                else:
                    # Schema and database are immutable once stored
                    record.updated_at = to_iso(conversation.updated_at)
                    new_turns = conversation.unsaved_turns()

                persisted = await session.scalar(
                    select(func.max(ConversationTurnRecord.turn_number)).where(
                        ConversationTurnRecord.conversation_id == conversation_id
                    )
                ) or 0
                # Number after whatever a concurrent save already appended
                for number, turn in enumerate(new_turns, start=persisted + 1):
                    session.add(
                        ConversationTurnRecord(
                            conversation_id=conversation_id,
                            turn_number=number,
                            query=turn.query,
                            statement=turn.statement,
                            explanation=turn.explanation,
                            created_at=to_iso(turn.timestamp),
                        )
                    )
        logger.debug("Saved conversation %s", conversation_id)

    async def _delete_rows(self, session: AsyncSession, conversation_id: str) -> None:
        await session.execute(
            delete(ConversationTurnRecord).where(
                ConversationTurnRecord.conversation_id == conversation_id
            )
        )
        await session.execute(
            delete(ConversationRecord).where(ConversationRecord.id == conversation_id)
        )

    async def _remove(self, conversation_id: str) -> None:
        async with self._sessions()() as session:
            async with session.begin():
                await self._delete_rows(session, conversation_id)

    async def _idle_ids(self, cutoff: datetime) -> list[str]:
        async with self._sessions()() as session:
            result = await session.execute(
                select(ConversationRecord.id).where(
                    ConversationRecord.updated_at < to_iso(cutoff)
                )
            )
            return list(result.scalars().all())

    async def _remove_if_idle(self, conversation_id: str, cutoff: datetime) -> bool:
        async with self._sessions()() as session:
            async with session.begin():
                updated_at = await session.scalar(
                    select(ConversationRecord.updated_at).where(
                        ConversationRecord.id == conversation_id
                    )
                )
                if updated_at is None or updated_at >= to_iso(cutoff):
                    return False
                await self._delete_rows(session, conversation_id)
        return True
