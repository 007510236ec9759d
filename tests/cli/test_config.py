"""Tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from src.cli.config import (
    ContextStoreConfig,
    Text2SQLConfig,
    load_config,
    resolve_env_vars,
)


def _write(path, data: dict) -> str:
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestDefaults:
    def test_defaults_without_file(self):
        cfg = load_config()

        assert cfg.server.host == "0.0.0.0"
        assert cfg.server.port == 8080
        assert cfg.server.rate_limit_per_minute == 10
        assert cfg.llm.provider == "anthropic"
        assert cfg.context_store.backend == "memory"
        assert cfg.generation.max_attempts == 2
        assert cfg.generation.history_turns == 3
        assert cfg.effective_api_keys == []

    def test_sqlite_url_defaults_to_data_dir(self, tmp_path):
        store = ContextStoreConfig(backend="sqlite")

        assert store.resolved_database_url == (
            f"sqlite+aiosqlite:///{tmp_path / 'data' / 'conversations.db'}"
        )

    def test_sql_backend_requires_url(self):
        with pytest.raises(ValidationError, match="database_url"):
            ContextStoreConfig(backend="sql")

    def test_invalid_port_rejected(self):
        with pytest.raises(ValidationError):
            Text2SQLConfig(server={"port": 0})


class TestEffectiveApiKeys:
    def test_merged_deduplicated_and_stripped(self):
        cfg = Text2SQLConfig(api_key=" a ", api_keys=["b", "a", "  ", "c"])

        assert cfg.effective_api_keys == ["a", "b", "c"]


class TestLoadFile:
    def test_explicit_path(self, tmp_path):
        path = _write(
            tmp_path / "custom.yaml",
            {"server": {"port": 9000}, "generation": {"max_attempts": 4}},
        )

        cfg = load_config(path)

        assert cfg.server.port == 9000
        assert cfg.generation.max_attempts == 4

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_working_directory_file_found(self, tmp_path):
        _write(tmp_path / "text2sql.yaml", {"llm": {"provider": "ollama"}})

        assert load_config().llm.provider == "ollama"

    def test_config_path_env(self, tmp_path, monkeypatch):
        path = _write(tmp_path / "elsewhere.yaml", {"server": {"log_format": "json"}})
        monkeypatch.setenv("TEXT2SQL_CONFIG_PATH", path)

        assert load_config().server.log_format == "json"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)).server.port == 8080

    def test_env_var_references_resolved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_ANTHROPIC_KEY", "sk-ant-from-env")
        path = _write(
            tmp_path / "c.yaml", {"llm": {"anthropic": {"api_key": "${MY_ANTHROPIC_KEY}"}}}
        )

        assert load_config(path).llm.anthropic.api_key == "sk-ant-from-env"

    def test_invalid_values_raise(self, tmp_path):
        path = _write(tmp_path / "c.yaml", {"context_store": {"backend": "mongo"}})

        with pytest.raises(ValidationError):
            load_config(path)


class TestEnvOverrides:
    def test_section_override(self, monkeypatch):
        monkeypatch.setenv("TEXT2SQL_SERVER_PORT", "7000")
        monkeypatch.setenv("TEXT2SQL_CONTEXT_STORE_BACKEND", "sqlite")

        cfg = load_config()

        assert cfg.server.port == 7000
        assert cfg.context_store.backend == "sqlite"

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path / "c.yaml", {"generation": {"max_attempts": 4}})
        monkeypatch.setenv("TEXT2SQL_GENERATION_MAX_ATTEMPTS", "5")

        assert load_config(path).generation.max_attempts == 5

    def test_nested_provider_override(self, monkeypatch):
        monkeypatch.setenv("TEXT2SQL_LLM_ANTHROPIC_MODEL", "claude-custom")
        monkeypatch.setenv("TEXT2SQL_LLM_PROVIDER", "openrouter")
        monkeypatch.setenv("TEXT2SQL_LLM_OPENROUTER_API_KEY", "or-key")

        cfg = load_config()

        assert cfg.llm.anthropic.model == "claude-custom"
        assert cfg.llm.provider == "openrouter"
        assert cfg.llm.openrouter.api_key == "or-key"

    def test_api_keys_comma_separated(self, monkeypatch):
        monkeypatch.setenv("TEXT2SQL_API_KEYS", "one, two,,three")

        assert load_config().api_keys == ["one", "two", "three"]

    def test_api_key_env(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "service-key")

        assert load_config().effective_api_keys == ["service-key"]

    def test_unknown_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("TEXT2SQL_NOT_A_SECTION", "x")

        assert load_config().server.port == 8080


class TestResolveEnvVars:
    def test_known_and_missing(self, monkeypatch):
        monkeypatch.setenv("HOST_NAME", "db")

        assert resolve_env_vars("${HOST_NAME}:${MISSING_VAR}") == "db:"
