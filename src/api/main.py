"""FastAPI application for the text-to-query API.

create_app() wires routers, middleware and exception handlers around a
Runtime. The lifespan starts the runtime (context store and its expiry
sweeper) and closes it on shutdown.
"""

import logging
import os
import time as _time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.middleware.auth import maybe_require_api_key
from src.api.middleware.body_limit import limit_body_size
from src.api.middleware.rate_limit import FixedWindowRateLimiter, enforce_rate_limit
from src.api.routes import conversations, generate
from src.api.schemas import HealthResponse
from src.cli.config import Text2SQLConfig, load_config
from src.errors import Text2SQLError, http_status_for
from src.services.runtime import Runtime, build_runtime
from src.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

try:
    APP_VERSION = _pkg_version("text2sql")
except PackageNotFoundError:
    APP_VERSION = "0.0.0"


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the runtime on startup and close it on shutdown."""
    app.state.startup_time = _time.time()
    runtime: Runtime | None = app.state.runtime
    if runtime is None:
        runtime = build_runtime(app.state.config)
        app.state.runtime = runtime

    await runtime.start()
    try:
        yield
    finally:
        await runtime.close()


async def text2sql_error_handler(request: Request, exc: Text2SQLError) -> JSONResponse:
    """Map a domain error to its registered HTTP status.

    Args:
        request: The incoming request.
        exc: The Text2SQLError exception.

    Returns:
        JSONResponse with ``code`` and ``message``.
    """
    status = http_status_for(exc.code)
    if status >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=status,
        content={"code": exc.code, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as 400 INVALID_REQUEST."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"code": "INVALID_REQUEST", "message": "; ".join(problems) or "invalid request"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL", "message": "internal server error"},
    )


def create_app(
    config: Text2SQLConfig | None = None,
    runtime: Runtime | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Loaded configuration; read from disk/env when None.
        runtime: Pre-built runtime, e.g. with a fake provider in tests. Built
            from ``config`` during startup when None.
    """
    if config is None:
        config = runtime.config if runtime is not None else load_config()

    app = FastAPI(
        title="Text2SQL API",
        description="Natural language to read-only SQL and Redis commands",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.runtime = runtime
    app.state.startup_time = _time.time()
    app.state.api_keys = config.effective_api_keys
    app.state.trust_proxy = config.server.trust_proxy
    app.state.max_body_bytes = config.server.max_body_bytes
    app.state.rate_limiter = FixedWindowRateLimiter(config.server.rate_limit_per_minute)

    # Registered innermost first: body limit runs after auth and rate limit
    app.middleware("http")(limit_body_size)
    app.middleware("http")(enforce_rate_limit)
    app.middleware("http")(maybe_require_api_key)

    # CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
    allowed_origins = _parse_allowed_origins()
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        )

    app.add_exception_handler(Text2SQLError, text2sql_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(generate.router, prefix="/api/v1")
    app.include_router(conversations.router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Liveness check with per-component status."""
        current = request.app.state.runtime
        store_status = "ok" if current is not None and current.started else "starting"
        uptime = int(_time.time() - request.app.state.startup_time)
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(UTC).replace(microsecond=0).isoformat(),
            version=APP_VERSION,
            checks={
                "service": {"status": "ok", "uptime_seconds": str(uptime)},
                "context_store": {"status": store_status},
            },
        )

    return app


def create_default_app() -> FastAPI:
    """Factory for ``uvicorn --factory src.api.main:create_default_app``."""
    config = load_config()
    configure_logging(
        config.server.log_level,
        config.server.log_format,
        config.server.log_file,
    )
    return create_app(config)
