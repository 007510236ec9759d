"""Tests for the fixed-window rate limiter and its middleware."""

from src.api.middleware.rate_limit import FixedWindowRateLimiter
from src.cli.config import ServerConfig, Text2SQLConfig

GENERATE_URL = "/api/v1/sql/generate"


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = FixedWindowRateLimiter(limit=3, clock=FakeClock())

        assert [limiter.allow("a") for _ in range(4)] == [True, True, True, False]

    def test_clients_are_independent(self):
        limiter = FixedWindowRateLimiter(limit=1, clock=FakeClock())

        assert limiter.allow("a")
        assert limiter.allow("b")
        assert not limiter.allow("a")

    def test_window_resets(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert limiter.allow("a")
        assert not limiter.allow("a")

        clock.now = 60.0

        assert limiter.allow("a")

    def test_zero_limit_disables(self):
        limiter = FixedWindowRateLimiter(limit=0, clock=FakeClock())

        assert all(limiter.allow("a") for _ in range(100))
        assert len(limiter) == 0

    def test_expired_windows_pruned(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock, prune_threshold=2)
        limiter.allow("a")
        limiter.allow("b")

        clock.now = 20.0
        limiter.allow("c")

        assert len(limiter) == 1

    def test_reset(self):
        limiter = FixedWindowRateLimiter(limit=1, clock=FakeClock())
        limiter.allow("a")

        limiter.reset()

        assert limiter.allow("a")


def _config(**server) -> Text2SQLConfig:
    return Text2SQLConfig(server=ServerConfig(**server))


class TestRateLimitMiddleware:
    def test_generate_returns_429_over_limit(self, make_client):
        client = make_client(_config(rate_limit_per_minute=2))

        statuses = [
            client.post(GENERATE_URL, json={"query": "q"}).status_code for _ in range(3)
        ]

        assert statuses[:2] == [400, 400]
        assert statuses[2] == 429
        response = client.post(GENERATE_URL, json={"query": "q"})
        assert response.json() == {
            "code": "RATE_LIMIT",
            "message": "too many requests, try again later",
        }

    def test_other_routes_not_limited(self, make_client):
        client = make_client(_config(rate_limit_per_minute=1))

        statuses = {client.get("/api/v1/conversations/conv_x").status_code for _ in range(3)}

        assert statuses == {404}

    def test_forwarded_header_ignored_without_proxy_trust(self, make_client):
        client = make_client(_config(rate_limit_per_minute=1))

        client.post(GENERATE_URL, json={"query": "q"}, headers={"X-Forwarded-For": "10.0.0.1"})
        response = client.post(
            GENERATE_URL, json={"query": "q"}, headers={"X-Forwarded-For": "10.0.0.2"}
        )

        assert response.status_code == 429

    def test_forwarded_header_used_with_proxy_trust(self, make_client):
        client = make_client(_config(rate_limit_per_minute=1, trust_proxy=True))

        first = client.post(
            GENERATE_URL, json={"query": "q"}, headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}
        )
        second = client.post(
            GENERATE_URL, json={"query": "q"}, headers={"X-Forwarded-For": "10.0.0.2"}
        )
        third = client.post(
            GENERATE_URL, json={"query": "q"}, headers={"X-Forwarded-For": "10.0.0.1"}
        )

        assert first.status_code == 400
        assert second.status_code == 400
        assert third.status_code == 429

    def test_unauthenticated_requests_not_counted(self, make_client):
        client = make_client(
            Text2SQLConfig(api_key="secret", server=ServerConfig(rate_limit_per_minute=1))
        )

        for _ in range(3):
            assert client.post(GENERATE_URL, json={"query": "q"}).status_code == 401

        response = client.post(GENERATE_URL, json={"query": "q"}, headers={"X-API-Key": "secret"})
        assert response.status_code == 400
