"""Conversation inspection and deletion.

Endpoints:
    GET    /conversations/{id}: Conversation snapshot
    DELETE /conversations/{id}: Delete a conversation (idempotent)
"""

import logging

from fastapi import APIRouter, Depends, Response

from src.api.dependencies import get_runtime
from src.api.schemas import ConversationResponse, ErrorResponse
from src.services.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get(
    "/{conversation_id}",
    response_model=ConversationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_conversation(
    conversation_id: str,
    runtime: Runtime = Depends(get_runtime),
) -> ConversationResponse:
    """Return the stored conversation or 404 CONVERSATION_NOT_FOUND."""
    conversation = await runtime.store.get(conversation_id)
    return ConversationResponse.from_conversation(conversation)


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    runtime: Runtime = Depends(get_runtime),
) -> Response:
    """Delete a conversation; unknown ids succeed as well."""
    await runtime.store.delete(conversation_id)
    logger.info("Deleted conversation %s", conversation_id)
    return Response(status_code=204)
