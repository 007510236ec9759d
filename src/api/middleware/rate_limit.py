"""Per-client fixed-window rate limiting for the generate route.

The limiter lives on ``app.state.rate_limiter``. Client identity is the
first ``X-Forwarded-For`` hop only when proxy trust is enabled; otherwise
the peer address, so callers cannot spoof their way past the limit.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

RATE_LIMITED_PATHS = frozenset({"/api/v1/sql/generate"})


@dataclass
class _Window:
    count: int
    expires_at: float


class FixedWindowRateLimiter:
    """Allow ``limit`` requests per client per ``window_seconds``.

    A limit of 0 disables limiting. Expired windows are pruned lazily
    when the table grows past ``prune_threshold`` entries.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 1024,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def allow(self, client_id: str) -> bool:
        if self.limit <= 0:
            return True
        with self._lock:
            now = self._clock()
            if len(self._windows) >= self._prune_threshold:
                self._prune(now)

            window = self._windows.get(client_id)
            if window is None or now >= window.expires_at:
                self._windows[client_id] = _Window(count=1, expires_at=now + self.window_seconds)
                return True
            if window.count >= self.limit:
                return False
            window.count += 1
            return True

    def _prune(self, now: float) -> None:
        expired = [cid for cid, w in self._windows.items() if now >= w.expires_at]
        for cid in expired:
            del self._windows[cid]

    def reset(self) -> None:
        """Forget every window. Used by tests."""
        with self._lock:
            self._windows.clear()


def get_client_id(request: Request, trust_proxy: bool) -> str:
    """Extract the client identity used for rate limiting."""
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request, call_next) -> Response:
    """FastAPI middleware entrypoint for the generate-route rate limit."""
    limiter: FixedWindowRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if (
        limiter is None
        or request.method.upper() != "POST"
        or request.url.path not in RATE_LIMITED_PATHS
    ):
        return await call_next(request)

    trust_proxy = getattr(request.app.state, "trust_proxy", False)
    client_id = get_client_id(request, trust_proxy)
    if not limiter.allow(client_id):
        logger.warning("Rate limit exceeded for client %s", client_id)
        return JSONResponse(
            status_code=429,
            content={"code": "RATE_LIMIT", "message": "too many requests, try again later"},
        )
    return await call_next(request)
