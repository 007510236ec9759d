"""Tests for optional API-key auth middleware behavior."""

import pytest

from src.api.middleware.auth import is_valid_key, should_authenticate
from src.cli.config import Text2SQLConfig

GENERATE_URL = "/api/v1/sql/generate"
KEY = "k" * 32


@pytest.fixture
def secured_client(make_client):
    return make_client(Text2SQLConfig(api_key=KEY, api_keys=["second-key"]))


def test_auth_disabled_without_keys(client):
    response = client.post(GENERATE_URL, json={"query": "list users"})
    # Reaches the route: the request itself is rejected, not the caller
    assert response.status_code == 400
    assert response.json()["code"] == "SCHEMA_REQUIRED"


def test_missing_key_rejected(secured_client):
    response = secured_client.post(GENERATE_URL, json={"query": "list users"})

    assert response.status_code == 401
    assert response.json() == {"code": "UNAUTHORIZED", "message": "missing API key"}


def test_wrong_key_rejected(secured_client):
    response = secured_client.post(
        GENERATE_URL, json={"query": "list users"}, headers={"X-API-Key": "wrong"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "invalid API key"


@pytest.mark.parametrize(
    "headers",
    [
        {"Authorization": f"Bearer {KEY}"},
        {"X-API-Key": KEY},
        {"X-API-Key": "second-key"},
    ],
)
def test_valid_key_accepted(secured_client, headers):
    response = secured_client.post(GENERATE_URL, json={"query": "list users"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "SCHEMA_REQUIRED"


def test_bearer_takes_precedence_over_header(secured_client):
    response = secured_client.post(
        GENERATE_URL,
        json={"query": "list users"},
        headers={"Authorization": "Bearer wrong", "X-API-Key": KEY},
    )

    assert response.status_code == 401


def test_health_is_public(secured_client):
    assert secured_client.get("/health").status_code == 200


def test_conversation_routes_protected(secured_client):
    response = secured_client.get("/api/v1/conversations/conv_x")

    assert response.status_code == 401


class TestHelpers:
    def test_should_authenticate(self):
        assert should_authenticate("/api/v1/sql/generate")
        assert not should_authenticate("/health")
        assert not should_authenticate("/openapi.json")
        assert not should_authenticate("/docs")

    def test_is_valid_key_matches_any_configured_key(self):
        assert is_valid_key("b", ["a", "b"])
        assert not is_valid_key("c", ["a", "b"])
        assert not is_valid_key("a", [])
