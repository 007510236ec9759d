"""Optional API-key auth middleware.

Keys come from configuration and are stored on ``app.state.api_keys`` by
the application factory. When no key is configured, auth is disabled.
Every authenticated request shares the same privilege level.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

_PUBLIC_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def extract_api_key(request: Request) -> str:
    """Return the caller's key from ``Authorization: Bearer`` or ``X-API-Key``."""
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return request.headers.get("X-API-Key", "").strip()


def is_valid_key(provided: str, expected_keys: list[str]) -> bool:
    """Constant-time comparison against every configured key."""
    matched = False
    for key in expected_keys:
        # Compare against all keys so timing does not reveal the position
        if hmac.compare_digest(provided.encode(), key.encode()):
            matched = True
    return matched


def _is_public_path(path: str) -> bool:
    return path.startswith(_PUBLIC_PATH_PREFIXES)


def should_authenticate(path: str) -> bool:
    """Return True when this path should be protected by API-key auth."""
    if _is_public_path(path):
        return False
    return path.startswith("/api/")


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"code": "UNAUTHORIZED", "message": message},
    )


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """FastAPI middleware entrypoint for optional API-key auth."""
    if request.method.upper() == "OPTIONS":
        return await call_next(request)

    expected_keys: list[str] = getattr(request.app.state, "api_keys", [])
    if not expected_keys or not should_authenticate(request.url.path):
        return await call_next(request)

    provided_key = extract_api_key(request)
    if not provided_key:
        return _unauthorized("missing API key")
    if not is_valid_key(provided_key, expected_keys):
        logger.warning("Rejected request to %s: invalid API key", request.url.path)
        return _unauthorized("invalid API key")
    return await call_next(request)
