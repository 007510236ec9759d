"""Explicit construction of the configured model backend.

There is no process-wide registry: the runtime calls build_provider once at
startup and injects the result into the generation service.
"""

import logging

from src.cli.config import LLMConfig
from src.llm.anthropic_provider import AnthropicProvider
from src.llm.base import LLMProvider
from src.llm.cache import CachedProvider
from src.llm.ollama_provider import OllamaProvider
from src.llm.openai_provider import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


def build_provider(config: LLMConfig) -> LLMProvider:
    """Create the backend named by ``config.provider``.

    Wraps it in a CachedProvider when ``cache_ttl_seconds`` is positive.

    Raises:
        ValueError: If the provider name is unknown.
    """
    name = config.provider
    if name == "anthropic":
        sub = config.anthropic
        provider: LLMProvider = AnthropicProvider(
            api_key=sub.api_key or None,
            model=sub.model or None,
            base_url=sub.base_url or None,
            timeout=config.timeout_seconds,
        )
    elif name in ("openai", "openrouter", "kimi"):
        sub = getattr(config, name)
        provider = OpenAICompatibleProvider(
            preset=name,
            api_key=sub.api_key or None,
            base_url=sub.base_url or None,
            model=sub.model or None,
            timeout=config.timeout_seconds,
        )
    elif name == "ollama":
        provider = OllamaProvider(
            base_url=config.ollama.base_url or None,
            model=config.ollama.model or None,
            timeout=config.timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown llm provider: {name}")

    logger.info("Using llm provider %s (model %s)", provider.name, provider.model)

    if config.cache_ttl_seconds > 0:
        provider = CachedProvider(
            provider,
            ttl_seconds=config.cache_ttl_seconds,
            max_entries=config.cache_max_entries,
        )
        logger.info("Completion cache enabled, ttl=%ss", config.cache_ttl_seconds)
    return provider
