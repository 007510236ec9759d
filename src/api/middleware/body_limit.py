"""Reject request bodies larger than ``app.state.max_body_bytes``."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


async def limit_body_size(request: Request, call_next) -> Response:
    """Return 413 when the declared Content-Length exceeds the limit."""
    max_bytes: int | None = getattr(request.app.state, "max_body_bytes", None)
    declared = request.headers.get("Content-Length")
    if max_bytes and declared:
        try:
            too_large = int(declared) > max_bytes
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"code": "INVALID_REQUEST", "message": "invalid Content-Length"},
            )
        if too_large:
            logger.warning("Rejected %s byte body on %s", declared, request.url.path)
            return JSONResponse(
                status_code=413,
                content={"code": "INVALID_REQUEST", "message": "request body too large"},
            )
    return await call_next(request)
