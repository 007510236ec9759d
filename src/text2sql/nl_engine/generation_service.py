"""End-to-end statement generation with a bounded validate-and-retry loop.

One call to GenerationService.generate():

    RESOLVING -> PROMPTING -> AWAITING_MODEL -> PARSING -> VALIDATING
      -> ACCEPTED -> PERSISTING -> DONE
      -> RETRYING -> AWAITING_MODEL ...   (validation failed, attempts left)
      -> FAILED                           (validation failed, none left)

Model failures abort immediately as LLMError; only validation failures are
re-prompted. After acceptance the turn is appended and the conversation is
saved on a best-effort basis: a save failure is logged and the response is
still returned.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from src.errors import LLMError, SQLValidationError
from src.llm.base import LLMProvider, Message
from src.services.context_store import ContextStore
from src.text2sql.models.conversation import Conversation
from src.text2sql.models.generation import (
    GenerateRequest,
    GenerateResponse,
    GenerationAttempt,
    GenerationState,
)
from src.text2sql.models.schema import DatabaseDescriptor
from src.text2sql.nl_engine.config import (
    DEFAULT_HISTORY_TURNS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
)
from src.text2sql.nl_engine.context_resolver import ContextResolver, ResolvedContext
from src.text2sql.nl_engine.dialects import (
    build_correction_prompt,
    build_system_prompt,
    build_user_content,
    format_turn_for_replay,
)
from src.text2sql.nl_engine.output_parser import parse_model_output
from src.text2sql.nl_engine.sql_validator import SQLValidator, StatementValidationError
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

StateListener = Callable[[GenerationState], None]


class Deadline:
    """Remaining time budget for one request; None means unbounded."""

    def __init__(self, timeout: float | None) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class GenerationService:
    """Turn a GenerateRequest into a validated read-only statement.

    Args:
        provider: Model-call capability.
        store: Conversation store.
        validator: Read-only validator; a default SQLValidator if None.
        max_attempts: Model calls allowed per request; values below 1 are
            clamped to 1.
        max_tokens: Completion token limit per call.
        temperature: Sampling temperature.
        history_turns: Prior turns replayed when continuing a conversation.
        state_listener: Called on every state transition.
    """

    def __init__(
        self,
        provider: LLMProvider,
        store: ContextStore,
        validator: SQLValidator | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        history_turns: int = DEFAULT_HISTORY_TURNS,
        state_listener: StateListener | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._validator = validator or SQLValidator()
        self._resolver = ContextResolver(store)
        self._max_attempts = max(1, max_attempts)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._history_turns = max(0, history_turns)
        self._state_listener = state_listener

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def _transition(self, state: GenerationState) -> None:
        logger.debug("generation state -> %s", state.value)
        if self._state_listener is not None:
            self._state_listener(state)

    async def generate(
        self,
        request: GenerateRequest,
        timeout: float | None = None,
    ) -> GenerateResponse:
        """Generate a statement for ``request``.

        Args:
            request: The generation request.
            timeout: Seconds allowed for the whole request.

        Returns:
            GenerateResponse with the accepted statement and conversation id.

        Raises:
            SchemaRequiredError, DatabaseRequiredError, SchemaMismatchError,
            DatabaseMismatchError: Conversation identity problems.
            ContextLookupError, ContextStoreTimeout: Store failures on load.
            LLMError: The model call failed or ran out of time.
            SQLValidationError: Every attempt was rejected.
        """
        deadline = Deadline(timeout)

        self._transition(GenerationState.RESOLVING)
        resolved = await self._resolver.resolve(request, timeout=deadline.remaining())
        conversation = resolved.conversation

        self._transition(GenerationState.PROMPTING)
        messages = self.build_messages(request, resolved)

        attempt = await self._run_attempts(messages, conversation.database, deadline)

        conversation.append_turn(request.query, attempt.statement, attempt.explanation)
        await self._persist(conversation, deadline)
        self._transition(GenerationState.DONE)

        logger.info(
            "Generated %s statement for conversation %s (new=%s, attempts=%d)",
            conversation.database.type.value,
            conversation.conversation_id,
            resolved.is_new,
            attempt.attempt_number,
        )
        return GenerateResponse(
            statement=attempt.statement,
            explanation=attempt.explanation,
            conversation_id=conversation.conversation_id,
        )

    def build_messages(
        self,
        request: GenerateRequest,
        resolved: ResolvedContext,
    ) -> list[Message]:
        """Initial message sequence for the first attempt.

        Prior turns are replayed only as pure continuation context: never
        in modify-mode, whether the previous statement was passed by the
        caller or inherited from the last turn.
        """
        conversation = resolved.conversation
        previous = resolved.previous_statement
        messages = [
            Message(
                role="system",
                content=build_system_prompt(conversation.database, modify=previous is not None),
            ),
            Message(
                role="user",
                content=build_user_content(request.query, conversation.db_schema, previous),
            ),
        ]

        replay = conversation.recent_turns(self._history_turns)
        if replay and previous is None:
            for turn in replay:
                messages.append(Message(role="user", content=turn.query))
                messages.append(
                    Message(
                        role="assistant",
                        content=format_turn_for_replay(turn.statement, turn.explanation),
                    )
                )
            messages.append(Message(role="user", content=request.query))

        return messages

    async def _run_attempts(
        self,
        messages: list[Message],
        database: DatabaseDescriptor,
        deadline: Deadline,
    ) -> GenerationAttempt:
        attempts: list[GenerationAttempt] = []
        messages = list(messages)

        for attempt_number in range(1, self._max_attempts + 1):
            self._transition(GenerationState.AWAITING_MODEL)
            raw_output = await self._complete(messages, deadline)

            self._transition(GenerationState.PARSING)
            parsed = parse_model_output(raw_output, database.type)

            self._transition(GenerationState.VALIDATING)
            attempt = GenerationAttempt(
                attempt_number=attempt_number,
                raw_output=raw_output,
                statement=parsed.statement,
                explanation=parsed.explanation,
            )
            try:
                self._validator.validate(parsed.statement, database.type, database.version)
            except StatementValidationError as e:
                attempt.validation_error = e.message
                attempts.append(attempt)
                logger.info(
                    "Attempt %d/%d rejected: %s",
                    attempt_number,
                    self._max_attempts,
                    e.message,
                )
                if attempt_number < self._max_attempts:
                    self._transition(GenerationState.RETRYING)
                    messages.append(Message(role="assistant", content=raw_output))
                    messages.append(
                        Message(
                            role="user",
                            content=build_correction_prompt(database, e.message),
                        )
                    )
                    continue
                self._transition(GenerationState.FAILED)
                raise SQLValidationError(e.message, attempts=attempts) from e

            attempt.success = True
            attempts.append(attempt)
            self._transition(GenerationState.ACCEPTED)
            return attempt

        # Unreachable: the loop either returns or raises on its last pass
        raise SQLValidationError("no attempts were made", attempts=attempts)

    async def _complete(self, messages: list[Message], deadline: Deadline) -> str:
        if deadline.expired:
            raise LLMError("request deadline exceeded before the model call")

        logger.debug(
            "Calling %s with %d messages: %s",
            self._provider.name,
            len(messages),
            [m.model_dump() for m in messages],
        )
        try:
            result = await asyncio.wait_for(
                self._provider.complete(messages, self._max_tokens, self._temperature),
                deadline.remaining(),
            )
        except asyncio.TimeoutError as e:
            raise LLMError("model call exceeded the request deadline") from e
        except Exception as e:
            raise LLMError(f"model call failed: {sanitize_error_message(str(e), 500)}") from e

        logger.debug("Model output: %s", result.text)
        return result.text

    async def _persist(self, conversation: Conversation, deadline: Deadline) -> None:
        self._transition(GenerationState.PERSISTING)
        try:
            await asyncio.wait_for(self._store.save(conversation), deadline.remaining())
        except Exception as e:
            logger.error(
                "Failed to save conversation %s: %s",
                conversation.conversation_id,
                e,
            )
