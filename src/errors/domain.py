"""Typed domain exceptions for API error mapping.

Every error the generation pipeline can surface carries a stable ``code``
registered in :mod:`src.errors.registry`. The transport layer maps errors
to HTTP responses by code, never by inspecting message text.

Usage:
    # In the service layer
    raise SchemaMismatchError("schema differs from the stored conversation")

    # At the boundary
    try:
        response = await service.generate(request)
    except Text2SQLError as e:
        return error_response(e.code, str(e))
"""

from typing import Any


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class Text2SQLError(DomainError):
    """Base class for errors surfaced by the generation pipeline."""

    code = "INTERNAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class SchemaRequiredError(Text2SQLError):
    """A new (or expired) conversation was started without a schema."""

    code = "SCHEMA_REQUIRED"


class DatabaseRequiredError(Text2SQLError):
    """A new (or expired) conversation was started without a database type."""

    code = "DATABASE_REQUIRED"


class SchemaMismatchError(Text2SQLError):
    """A resupplied schema disagrees with the conversation's stored schema."""

    code = "SCHEMA_MISMATCH"


class DatabaseMismatchError(Text2SQLError):
    """A resupplied database descriptor disagrees with the stored one."""

    code = "DATABASE_MISMATCH"


class ConversationNotFoundError(Text2SQLError):
    """The context store has no conversation under the given id.

    Consumed by the context resolver and translated into a
    required-field error; only surfaced directly by lookup endpoints.
    """

    code = "CONVERSATION_NOT_FOUND"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' not found")
        self.conversation_id = conversation_id


class SQLValidationError(Text2SQLError):
    """Every generation attempt produced a statement the validator rejected.

    Attributes:
        last_error: The validator message from the final attempt.
        attempts: Attempt records (GenerationAttempt) for diagnostics.
    """

    code = "SQL_VALIDATION_FAILED"

    def __init__(
        self,
        last_error: str,
        attempts: list[Any] | None = None,
    ) -> None:
        super().__init__(last_error)
        self.last_error = last_error
        self.attempts = attempts or []


class LLMError(Text2SQLError):
    """The language-model call failed or exceeded its deadline."""

    code = "LLM_ERROR"


class ContextLookupError(Text2SQLError):
    """The context store failed while loading a conversation."""

    code = "CONTEXT_LOOKUP_FAILED"


class ContextStoreTimeout(Text2SQLError):
    """A context store operation did not finish before its deadline."""

    code = "CONTEXT_STORE_TIMEOUT"
