"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. TEXT2SQL_CONFIG_PATH environment variable
3. ./text2sql.yaml (working directory)
4. ~/.text2sql/config.yaml (user home)

When no file is found the defaults below apply.

Environment variables override YAML: TEXT2SQL_<SECTION>_<KEY>, and for
the per-provider LLM blocks TEXT2SQL_LLM_<PROVIDER>_<KEY>. API_KEY
overrides the service API key.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from src.utils.paths import get_default_db_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "TEXT2SQL_"
CONFIG_PATH_ENV = "TEXT2SQL_CONFIG_PATH"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = "info"
    log_format: Literal["text", "json"] = "text"
    log_file: str | None = None
    trust_proxy: bool = False
    rate_limit_per_minute: int = Field(default=10, ge=0)
    max_body_bytes: int = Field(default=1 << 20, ge=1)


class ContextStoreConfig(BaseModel):
    """Conversation storage settings.

    ``memory`` keeps conversations in-process; ``sqlite`` and ``sql`` use
    the SQLAlchemy store. ``sql`` requires an explicit async database_url.
    """

    backend: Literal["memory", "sqlite", "sql"] = "memory"
    database_url: str = ""
    cleanup_interval_seconds: float = Field(default=3600, gt=0)
    max_age_hours: float = Field(default=24, gt=0)
    timeout_seconds: float | None = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def sql_requires_url(self) -> "ContextStoreConfig":
        """A generic SQL backend cannot guess its URL."""
        if self.backend == "sql" and not self.database_url:
            raise ValueError("context_store.database_url is required for the sql backend")
        return self

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{get_default_db_path()}"


class GenerationConfig(BaseModel):
    """Retry loop and sampling settings."""

    max_attempts: int = Field(default=2, ge=1)
    max_tokens: int = Field(default=2048, ge=1)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    history_turns: int = Field(default=3, ge=0)
    request_timeout_seconds: float | None = Field(default=60.0, gt=0)


class AnthropicConfig(BaseModel):
    """Anthropic credentials; api_key falls back to ANTHROPIC_API_KEY."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""


class OpenAICompatibleConfig(BaseModel):
    """OpenAI-compatible service; empty fields use the preset defaults."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""


class OllamaConfig(BaseModel):
    """Local Ollama server."""

    base_url: str = "http://localhost:11434"
    model: str = "llama3"


class LLMConfig(BaseModel):
    """Language-model backend selection."""

    provider: Literal["anthropic", "openai", "openrouter", "kimi", "ollama"] = "anthropic"
    timeout_seconds: float = Field(default=60.0, gt=0)
    cache_ttl_seconds: float = Field(default=0, ge=0)
    cache_max_entries: int = Field(default=1024, ge=1)
    anthropic: AnthropicConfig = AnthropicConfig()
    openai: OpenAICompatibleConfig = OpenAICompatibleConfig()
    openrouter: OpenAICompatibleConfig = OpenAICompatibleConfig()
    kimi: OpenAICompatibleConfig = OpenAICompatibleConfig()
    ollama: OllamaConfig = OllamaConfig()


class Text2SQLConfig(BaseModel):
    """Top-level configuration for the text-to-query service."""

    server: ServerConfig = ServerConfig()
    api_key: str = ""
    api_keys: list[str] = []
    context_store: ContextStoreConfig = ContextStoreConfig()
    generation: GenerationConfig = GenerationConfig()
    llm: LLMConfig = LLMConfig()

    @property
    def effective_api_keys(self) -> list[str]:
        """api_key and api_keys merged, blanks dropped, order kept."""
        keys: list[str] = []
        for key in [self.api_key, *self.api_keys]:
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
        return keys


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if env_path:
        return Path(env_path)
    candidates = [
        Path.cwd() / "text2sql.yaml",
        Path.cwd() / "text2sql.yml",
        Path.home() / ".text2sql" / "config.yaml",
        Path.home() / ".text2sql" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _nested_sections(model: type[BaseModel]) -> list[str]:
    """Field names of ``model`` whose values are themselves models."""
    names = []
    for name, field in model.model_fields.items():
        annotation = field.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            names.append(name)
    return sorted(names, key=len, reverse=True)


def _match_prefix(suffix: str, names: list[str]) -> tuple[str | None, str]:
    for name in names:
        if suffix.startswith(name + "_"):
            return name, suffix[len(name) + 1:]
    return None, ""


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply TEXT2SQL_<SECTION>_<KEY> env var overrides to config data.

    Matches section names by longest prefix so multi-word section names
    like ``context_store`` are handled correctly, and descends one more
    level for nested blocks such as ``llm.anthropic``. Values stay strings;
    pydantic coerces them to the field types.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    sections = _nested_sections(Text2SQLConfig)
    scalar_fields = [
        name for name in Text2SQLConfig.model_fields if name not in sections
    ]
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
            continue
        suffix = key[len(ENV_PREFIX):].lower()

        if suffix in scalar_fields:
            if suffix == "api_keys":
                data[suffix] = [part.strip() for part in value.split(",") if part.strip()]
            else:
                data[suffix] = value
            continue

        section, field = _match_prefix(suffix, sections)
        if section is None or not field:
            continue
        target = data.setdefault(section, {})
        if not isinstance(target, dict):
            continue

        section_model = Text2SQLConfig.model_fields[section].annotation
        subsection, subfield = _match_prefix(field, _nested_sections(section_model))
        if subsection is not None and subfield:
            sub_target = target.setdefault(subsection, {})
            if isinstance(sub_target, dict):
                sub_target[subfield] = value
            continue
        target[field] = value

    api_key = os.environ.get("API_KEY", "").strip()
    if api_key:
        data["api_key"] = api_key
    return data


def load_config(config_path: str | None = None) -> Text2SQLConfig:
    """Load configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            TEXT2SQL_CONFIG_PATH, the working directory, then ~/.text2sql/.

    Returns:
        Parsed and validated Text2SQLConfig. Defaults plus env overrides
        when no file is found.

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist.
        pydantic.ValidationError: If the merged values are invalid.
    """
    if config_path:
        path: Path | None = Path(config_path)
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults")

    # Resolve ${VAR} references
    data = _resolve_env_vars_recursive(raw_data)

    # Apply TEXT2SQL_ env var overrides
    data = _apply_env_overrides(data)

    return Text2SQLConfig(**data)
