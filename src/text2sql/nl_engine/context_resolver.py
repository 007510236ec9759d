"""Resolve a request into a new or continuing conversation.

The resolver is read-only with respect to the store: it loads an existing
conversation or builds a fresh one, enforces that a continuing
conversation's schema and database are never changed, and hands the
result to the generation service, which saves it after a successful turn.
"""

import asyncio
import logging
from dataclasses import dataclass

from src.errors import (
    ContextLookupError,
    ContextStoreTimeout,
    ConversationNotFoundError,
    DatabaseMismatchError,
    DatabaseRequiredError,
    SchemaMismatchError,
    SchemaRequiredError,
)
from src.services.context_store import ContextStore
from src.text2sql.models.conversation import Conversation
from src.text2sql.models.generation import GenerateRequest
from src.text2sql.models.schema import databases_match, schemas_match

logger = logging.getLogger(__name__)


@dataclass
class ResolvedContext:
    """Outcome of resolution.

    Attributes:
        conversation: Transient copy of the conversation for this request.
        is_new: True when no stored conversation was found or requested.
        previous_statement: Statement to amend, if any (modify-mode).
    """

    conversation: Conversation
    is_new: bool
    previous_statement: str | None = None


def resolve_previous_statement(
    request: GenerateRequest,
    conversation: Conversation,
    is_new: bool,
) -> str | None:
    """Explicit request value wins, else the last turn of an existing
    conversation, else None."""
    if request.previous_statement and request.previous_statement.strip():
        return request.previous_statement
    if not is_new and conversation.last_turn is not None:
        return conversation.last_turn.statement or None
    return None


class ContextResolver:
    """Decide whether a request starts or continues a conversation."""

    def __init__(self, store: ContextStore) -> None:
        self._store = store

    async def resolve(
        self,
        request: GenerateRequest,
        timeout: float | None = None,
    ) -> ResolvedContext:
        """Load or create the conversation for ``request``.

        Args:
            request: Incoming generation request.
            timeout: Seconds allowed for the store lookup.

        Returns:
            ResolvedContext with a conversation copy and the is_new flag.

        Raises:
            SchemaRequiredError: New conversation without a schema.
            DatabaseRequiredError: New conversation without a database type.
            SchemaMismatchError: Resupplied schema differs from the stored one.
            DatabaseMismatchError: Resupplied database differs from the stored one.
            ContextStoreTimeout: The store lookup exceeded ``timeout``.
            ContextLookupError: Any other store failure.
        """
        if not request.conversation_id:
            conversation = self._start_conversation(request, expired=False)
            return self._resolved(request, conversation, is_new=True)

        try:
            stored = await self._load(request.conversation_id, timeout)
        except ConversationNotFoundError:
            logger.info(
                "Conversation %s not found, starting a new one",
                request.conversation_id,
            )
            conversation = self._start_conversation(request, expired=True)
            return self._resolved(request, conversation, is_new=True)

        self._check_identity(request, stored)
        return self._resolved(request, stored, is_new=False)

    async def _load(self, conversation_id: str, timeout: float | None) -> Conversation:
        try:
            return await asyncio.wait_for(self._store.get(conversation_id), timeout)
        except (ConversationNotFoundError, ContextStoreTimeout):
            raise
        except asyncio.TimeoutError as e:
            raise ContextStoreTimeout(
                f"loading conversation '{conversation_id}' timed out"
            ) from e
        except Exception as e:
            logger.error("Failed to load conversation %s: %s", conversation_id, e)
            raise ContextLookupError(f"failed to load conversation: {e}") from e

    def _start_conversation(self, request: GenerateRequest, expired: bool) -> Conversation:
        if expired:
            reason = "conversation_id is invalid or expired; provide {}"
        else:
            reason = "a new conversation requires {}"

        if not request.has_schema:
            raise SchemaRequiredError(reason.format("a schema"))
        if not request.has_database:
            raise DatabaseRequiredError(reason.format("a database type"))

        return Conversation.start(request.db_schema, request.database)

    def _check_identity(self, request: GenerateRequest, stored: Conversation) -> None:
        if request.has_schema and not schemas_match(stored.db_schema, request.db_schema):
            raise SchemaMismatchError("schema does not match the conversation's stored schema")

        if request.has_database and not databases_match(stored.database, request.database):
            stored_db = stored.database
            label = " ".join(
                part for part in (stored_db.type.value if stored_db.type else "", stored_db.version) if part
            )
            raise DatabaseMismatchError(
                f"database does not match the conversation's stored database ({label})"
            )

    def _resolved(
        self,
        request: GenerateRequest,
        conversation: Conversation,
        is_new: bool,
    ) -> ResolvedContext:
        return ResolvedContext(
            conversation=conversation,
            is_new=is_new,
            previous_statement=resolve_previous_statement(request, conversation, is_new),
        )
