"""Tests for secret redaction utilities."""

from src.utils.redaction import redact_for_logging, sanitize_error_message


class TestRedactForLogging:
    def test_sensitive_keys_redacted(self):
        result = redact_for_logging({"api_key": "abc", "Authorization": "Bearer x", "host": "h"})

        assert result == {
            "api_key": "***REDACTED***",
            "Authorization": "***REDACTED***",
            "host": "h",
        }

    def test_nested_config_redacted(self):
        config = {
            "llm": {"provider": "anthropic", "anthropic": {"api_key": "sk-ant-xyz", "model": ""}},
            "api_keys": ["one", "two"],
        }

        result = redact_for_logging(config)

        assert result["llm"]["anthropic"] == {"api_key": "***REDACTED***", "model": ""}
        assert result["llm"]["provider"] == "anthropic"
        assert result["api_keys"] == "***REDACTED***"

    def test_empty_values_stay_visible(self):
        assert redact_for_logging({"api_key": "", "api_keys": []}) == {
            "api_key": "",
            "api_keys": [],
        }

    def test_dicts_in_lists_redacted(self):
        result = redact_for_logging({"items": [{"token": "t"}, "plain"]})

        assert result == {"items": [{"token": "***REDACTED***"}, "plain"]}

    def test_input_not_mutated(self):
        original = {"password": "p"}
        redact_for_logging(original)

        assert original == {"password": "p"}


class TestSanitizeErrorMessage:
    def test_none_passthrough(self):
        assert sanitize_error_message(None) is None

    def test_bearer_token_redacted(self):
        result = sanitize_error_message("request failed: Authorization: Bearer abc123")

        assert "abc123" not in result
        assert "***REDACTED***" in result

    def test_provider_key_redacted(self):
        result = sanitize_error_message("invalid key sk-ant-REALKEY123456")

        assert "REALKEY" not in result

    def test_key_value_redacted(self):
        result = sanitize_error_message("bad config api_key=supersecret")

        assert "supersecret" not in result

    def test_truncated(self):
        result = sanitize_error_message("x" * 100, max_length=20)

        assert len(result) == 20
        assert result.endswith("...")

    def test_plain_message_unchanged(self):
        assert sanitize_error_message("status 500: upstream") == "status 500: upstream"
