"""Request, response and attempt-tracking models for statement generation.

GenerateRequest/GenerateResponse are the contract between the transport
layer and the generation service. GenerationAttempt records each pass of
the validate-and-retry loop, in the same spirit as the attempt history the
loop attaches to SQLValidationError when it gives up.
"""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.text2sql.models.conversation import utc_now
from src.text2sql.models.schema import DatabaseDescriptor, Schema


class GenerateRequest(BaseModel):
    """A natural-language question plus optional conversation context.

    On a continuing conversation ``schema`` and ``database`` may be
    omitted and are inherited from the stored conversation.
    """

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="Natural-language question")
    db_schema: Schema | None = Field(
        default=None,
        alias="schema",
        description="Declared tables; required when starting a conversation",
    )
    database: DatabaseDescriptor | None = Field(
        default=None,
        description="Target backend; required when starting a conversation",
    )
    conversation_id: str | None = Field(
        default=None,
        description="Token of an existing conversation",
    )
    previous_statement: str | None = Field(
        default=None,
        validation_alias=AliasChoices("previous_statement", "previous_sql"),
        description="Statement to amend; forces modify-mode",
    )

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be empty")
        return value

    @property
    def has_schema(self) -> bool:
        return self.db_schema is not None and not self.db_schema.is_empty

    @property
    def has_database(self) -> bool:
        return self.database is not None and not self.database.is_empty


class GenerateResponse(BaseModel):
    """Accepted statement, explanation and the conversation token."""

    statement: str
    explanation: str = ""
    conversation_id: str


class ParsedOutput(BaseModel):
    """Candidate statement and explanation extracted from model text.

    An empty ``statement`` means no recognizable statement was found.
    """

    statement: str = ""
    explanation: str = ""


class GenerationState(str, Enum):
    """States of one generate() call."""

    RESOLVING = "resolving"
    PROMPTING = "prompting"
    AWAITING_MODEL = "awaiting_model"
    PARSING = "parsing"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    RETRYING = "retrying"
    FAILED = "failed"
    PERSISTING = "persisting"
    DONE = "done"


class GenerationAttempt(BaseModel):
    """Record of a single model call and its validation outcome.

    Attributes:
        attempt_number: 1-based attempt index.
        raw_output: Unparsed model text.
        statement: Statement extracted by the output parser.
        explanation: Explanation extracted by the output parser.
        validation_error: Validator message, None when accepted.
        success: Whether the statement passed validation.
        timestamp: When the attempt finished.
    """

    attempt_number: int = Field(..., ge=1)
    raw_output: str = ""
    statement: str = ""
    explanation: str = ""
    validation_error: str | None = None
    success: bool = False
    timestamp: datetime = Field(default_factory=utc_now)
