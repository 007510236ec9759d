"""Tests for CLI commands via typer's CliRunner."""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from src.cli.main import app
from src.services.runtime import build_runtime
from tests.helpers import FakeProvider

runner = CliRunner()

SCHEMA = [{"name": "users", "columns": [{"name": "id", "type": "int"}]}]


def _fake_runtime(outputs):
    provider = FakeProvider(outputs)

    def _build(config):
        return build_runtime(config, provider=provider)

    return _build, provider


class TestBasics:
    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "generate", "validate", "config"):
            assert command in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Text2SQL" in result.stdout


class TestConfigCommands:
    def test_show_redacts_secrets(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "very-secret-key")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "very-secret-key" not in result.stdout
        assert "REDACTED" in result.stdout

    def test_validate_reports_settings(self):
        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 0
        assert "Config is valid" in result.stdout
        assert "anthropic" in result.stdout

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(
            app, ["--config", str(tmp_path / "missing.yaml"), "config", "validate"]
        )

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("server:\n  port: 0\n")

        result = runner.invoke(app, ["--config", str(path), "config", "validate"])

        assert result.exit_code == 1
        assert "validation failed" in result.stdout


class TestValidateCommand:
    def test_read_only_statement_accepted(self):
        result = runner.invoke(app, ["validate", "SELECT id FROM users", "-d", "mysql"])

        assert result.exit_code == 0
        assert "accepted" in result.stdout

    def test_write_statement_rejected(self):
        result = runner.invoke(app, ["validate", "DELETE FROM users", "-d", "postgres"])

        assert result.exit_code == 1
        assert "Rejected" in result.stdout

    def test_redis_write_rejected(self):
        result = runner.invoke(app, ["validate", "FLUSHALL", "-d", "redis"])

        assert result.exit_code == 1

    def test_unknown_database(self):
        result = runner.invoke(app, ["validate", "SELECT 1", "-d", "oracle"])

        assert result.exit_code == 2
        assert "Unsupported database type" in result.stdout


@patch("src.cli.main.configure_logging")
class TestGenerateCommand:
    def test_generates_from_schema_file(self, _logging, tmp_path):
        schema_file = tmp_path / "schema.json"
        schema_file.write_text(json.dumps(SCHEMA))
        build, provider = _fake_runtime(["SELECT id FROM users;\nExplanation: ids"])

        with patch("src.cli.main.build_runtime", side_effect=build):
            result = runner.invoke(
                app,
                ["generate", "all ids", "-s", str(schema_file), "-d", "sqlite", "--json"],
            )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["statement"] == "SELECT id FROM users"
        assert data["conversation_id"].startswith("conv_")
        assert provider.closed

    def test_yaml_schema_file(self, _logging, tmp_path):
        schema_file = tmp_path / "schema.yaml"
        schema_file.write_text("tables:\n  - name: users\n    columns:\n      - name: id\n")
        build, _ = _fake_runtime(["SELECT id FROM users"])

        with patch("src.cli.main.build_runtime", side_effect=build):
            result = runner.invoke(
                app, ["generate", "all ids", "-s", str(schema_file), "-d", "mysql"]
            )

        assert result.exit_code == 0
        assert "SELECT id FROM users" in result.stdout

    def test_domain_error_exits_1(self, _logging):
        build, _ = _fake_runtime([])

        with patch("src.cli.main.build_runtime", side_effect=build):
            result = runner.invoke(app, ["generate", "all ids", "-d", "mysql"])

        assert result.exit_code == 1
        assert "SCHEMA_REQUIRED" in result.stdout
