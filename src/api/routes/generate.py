"""Statement generation endpoint.

Endpoints:
    POST /sql/generate: Generate a validated read-only statement
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import get_runtime
from src.api.schemas import ErrorResponse, GenerateResponseBody
from src.services.runtime import Runtime
from src.text2sql.models import GenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sql", tags=["generation"])


@router.post(
    "/generate",
    response_model=GenerateResponseBody,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def generate_statement(
    payload: GenerateRequest,
    runtime: Runtime = Depends(get_runtime),
) -> GenerateResponseBody:
    """Generate a read-only statement for a natural-language question.

    Domain errors propagate to the application's Text2SQLError handler,
    which maps each error code to its HTTP status.
    """
    response = await runtime.service.generate(payload, timeout=runtime.request_timeout)
    return GenerateResponseBody.from_response(response)
