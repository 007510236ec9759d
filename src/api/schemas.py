"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the text-to-query REST API.
The request body is the engine's own GenerateRequest; only responses
get transport-specific shapes here.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.text2sql.models import Conversation, DatabaseDescriptor, GenerateResponse, Schema


class ErrorResponse(BaseModel):
    """Error body returned for every non-2xx response."""

    code: str
    message: str


class GenerateResponseBody(BaseModel):
    """Response schema for statement generation.

    ``sql`` duplicates ``statement`` for clients of the older field name.
    """

    statement: str
    sql: str
    explanation: str = ""
    conversation_id: str

    @classmethod
    def from_response(cls, response: GenerateResponse) -> "GenerateResponseBody":
        return cls(
            statement=response.statement,
            sql=response.statement,
            explanation=response.explanation,
            conversation_id=response.conversation_id,
        )


class TurnResponse(BaseModel):
    """Response schema for a conversation turn."""

    query: str
    statement: str
    explanation: str = ""
    timestamp: datetime


class ConversationResponse(BaseModel):
    """Snapshot of a stored conversation."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str
    db_schema: Schema = Field(alias="schema")
    database: DatabaseDescriptor
    turns: list[TurnResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            conversation_id=conversation.conversation_id,
            db_schema=conversation.db_schema,
            database=conversation.database,
            turns=[
                TurnResponse(
                    query=turn.query,
                    statement=turn.statement,
                    explanation=turn.explanation,
                    timestamp=turn.timestamp,
                )
                for turn in conversation.history
            ],
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: str = "ok"
    timestamp: str
    version: str
    checks: dict[str, dict[str, str]]
