"""Conversation storage contract and the in-memory backend.

A ContextStore owns every Conversation. Callers always receive copies, so
mutations stay invisible until ``save``. Writes (save/delete) for one
conversation id are serialized through a per-id asyncio.Lock; different
ids never block each other and reads take no lock.

Idle conversations are removed by an ExpirySweeper owned by the store:
``start()`` launches it, ``close()`` cancels and awaits it. The sweep
snapshots candidate ids first and then deletes them in small batches,
re-checking age under the per-id lock, so a concurrent save that revives a
conversation wins.

Example:
    async with MemoryContextStore(cleanup_interval=3600, max_age=timedelta(hours=24)) as store:
        await store.save(conversation)
        loaded = await store.get(conversation.conversation_id)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timedelta
from typing import TypeVar

from src.errors import ContextStoreTimeout, ConversationNotFoundError
from src.text2sql.models.conversation import Conversation, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SWEEP_BATCH_SIZE = 100


class KeyedLocks:
    """Per-key asyncio locks, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
            self._users[key] = 0
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class ExpirySweeper:
    """Periodic task that calls ``store.cleanup(max_age)``.

    Owned by a ContextStore. Errors in one cycle are logged and the loop
    continues; cancellation stops it.
    """

    def __init__(self, store: "ContextStore", interval_seconds: float, max_age: timedelta) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self.interval_seconds = interval_seconds
        self.max_age = max_age
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="context-store-sweeper")
        logger.info(
            "Started conversation sweeper (interval=%ss, max_age=%s)",
            self.interval_seconds,
            self.max_age,
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Stopped conversation sweeper")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                removed = await self._store.cleanup(self.max_age)
            except Exception as e:
                logger.error("Conversation sweep failed: %s", e)
                continue
            if removed:
                logger.info("Removed %d idle conversations", removed)


class ContextStore(ABC):
    """Async storage contract for conversations.

    Args:
        cleanup_interval: Seconds between sweeps; None disables the sweeper.
        max_age: Idle age after which the sweeper removes a conversation.
        timeout: Seconds allowed per backend operation; None for no limit.
        sweep_batch_size: Ids removed per batch before yielding.
    """

    def __init__(
        self,
        cleanup_interval: float | None = None,
        max_age: timedelta | None = None,
        timeout: float | None = None,
        sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
    ) -> None:
        self._locks = KeyedLocks()
        self._timeout = timeout
        self._sweep_batch_size = max(1, sweep_batch_size)
        self._sweeper: ExpirySweeper | None = None
        if cleanup_interval and max_age is not None:
            self._sweeper = ExpirySweeper(self, cleanup_interval, max_age)

    @property
    def sweeper(self) -> ExpirySweeper | None:
        return self._sweeper

    @abstractmethod
    async def get(self, conversation_id: str) -> Conversation:
        """Return a copy of the conversation.

        Raises:
            ConversationNotFoundError: If no conversation has this id.
        """

    async def save(self, conversation: Conversation) -> None:
        """Persist ``conversation`` and bump its ``updated_at``.

        Only turns appended since the copy was loaded are written, after
        whatever is stored by then, so concurrent continuations of one
        conversation both keep their turn.
        """
        async with self._locks.hold(conversation.conversation_id):
            conversation.updated_at = utc_now()
            await self._bounded(self._write(conversation), "save")
            conversation.mark_persisted()

    async def delete(self, conversation_id: str) -> None:
        """Remove a conversation. Deleting a missing id is a no-op."""
        async with self._locks.hold(conversation_id):
            await self._bounded(self._remove(conversation_id), "delete")

    async def cleanup(self, max_age: timedelta) -> int:
        """Remove conversations idle longer than ``max_age``.

        Returns:
            Number of conversations removed.
        """
        cutoff = utc_now() - max_age
        candidates = await self._bounded(self._idle_ids(cutoff), "cleanup")
        removed = 0
        for start in range(0, len(candidates), self._sweep_batch_size):
            for conversation_id in candidates[start:start + self._sweep_batch_size]:
                async with self._locks.hold(conversation_id):
                    if await self._bounded(
                        self._remove_if_idle(conversation_id, cutoff), "cleanup"
                    ):
                        removed += 1
            # Let request handlers run between batches
            await asyncio.sleep(0)
        return removed

    async def start(self) -> None:
        """Prepare the backend and start the sweeper, if configured."""
        await self._open()
        if self._sweeper is not None:
            self._sweeper.start()

    async def close(self) -> None:
        """Stop the sweeper and release backend resources."""
        if self._sweeper is not None:
            await self._sweeper.stop()
        await self._release()

    async def __aenter__(self) -> "ContextStore":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        if self._timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self._timeout)
        except asyncio.TimeoutError as e:
            raise ContextStoreTimeout(
                f"context store {operation} exceeded {self._timeout}s"
            ) from e

    @abstractmethod
    async def _write(self, conversation: Conversation) -> None:
        """Append ``conversation.unsaved_turns()``; called with its lock held."""

    @abstractmethod
    async def _remove(self, conversation_id: str) -> None:
        """Remove the conversation if present; called with its lock held."""

    @abstractmethod
    async def _idle_ids(self, cutoff: datetime) -> list[str]:
        """Snapshot ids whose ``updated_at`` is before ``cutoff``."""

    @abstractmethod
    async def _remove_if_idle(self, conversation_id: str, cutoff: datetime) -> bool:
        """Remove the conversation if still idle; called with its lock held."""

    async def _open(self) -> None:
        """Backend setup hook."""

    async def _release(self) -> None:
        """Backend teardown hook."""


class MemoryContextStore(ContextStore):
    """Volatile store backed by a dict of conversation copies."""

    def __init__(
        self,
        cleanup_interval: float | None = None,
        max_age: timedelta | None = None,
        sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
    ) -> None:
        super().__init__(
            cleanup_interval=cleanup_interval,
            max_age=max_age,
            sweep_batch_size=sweep_batch_size,
        )
        self._conversations: dict[str, Conversation] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    async def get(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        loaded = conversation.model_copy(deep=True)
        loaded.mark_persisted()
        return loaded

    async def _write(self, conversation: Conversation) -> None:
        stored = self._conversations.get(conversation.conversation_id)
        if stored is None:
            self._conversations[conversation.conversation_id] = conversation.model_copy(deep=True)
            return
        stored.history.extend(turn.model_copy() for turn in conversation.unsaved_turns())
        stored.updated_at = conversation.updated_at

    async def _remove(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)

    async def _idle_ids(self, cutoff: datetime) -> list[str]:
        return [
            conversation_id
            for conversation_id, conversation in self._conversations.items()
            if conversation.updated_at < cutoff
        ]

    async def _remove_if_idle(self, conversation_id: str, cutoff: datetime) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.updated_at >= cutoff:
            return False
        del self._conversations[conversation_id]
        return True

    async def _release(self) -> None:
        self._conversations.clear()
