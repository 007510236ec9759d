"""Explicit wiring of provider, store and generation service.

The FastAPI lifespan and the CLI both build a Runtime from configuration,
start it, and close it on shutdown. Nothing is looked up by name at call
time.

Example:
    runtime = build_runtime(load_config())
    async with runtime:
        response = await runtime.service.generate(request)
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from src.cli.config import ContextStoreConfig, Text2SQLConfig
from src.llm.base import LLMProvider
from src.llm.factory import build_provider
from src.services.context_store import ContextStore, MemoryContextStore
from src.services.sql_context_store import SQLContextStore
from src.text2sql.nl_engine.generation_service import GenerationService
from src.text2sql.nl_engine.sql_validator import SQLValidator

logger = logging.getLogger(__name__)


def build_store(config: ContextStoreConfig) -> ContextStore:
    """Create the configured context store (not yet started)."""
    max_age = timedelta(hours=config.max_age_hours)
    if config.backend == "memory":
        return MemoryContextStore(
            cleanup_interval=config.cleanup_interval_seconds,
            max_age=max_age,
        )
    return SQLContextStore(
        config.resolved_database_url,
        cleanup_interval=config.cleanup_interval_seconds,
        max_age=max_age,
        timeout=config.timeout_seconds,
    )


@dataclass
class Runtime:
    """Owned collaborators for one process."""

    config: Text2SQLConfig
    provider: LLMProvider
    store: ContextStore
    service: GenerationService
    started: bool = field(default=False, init=False)

    @property
    def request_timeout(self) -> float | None:
        return self.config.generation.request_timeout_seconds

    async def start(self) -> None:
        if self.started:
            return
        await self.store.start()
        self.started = True
        logger.info(
            "Runtime started (store=%s, provider=%s)",
            self.config.context_store.backend,
            self.provider.name,
        )

    async def close(self) -> None:
        """Stop the store's sweeper, release the store and the provider."""
        try:
            await self.store.close()
        finally:
            await self.provider.aclose()
            self.started = False
            logger.info("Runtime closed")

    async def __aenter__(self) -> "Runtime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_runtime(
    config: Text2SQLConfig,
    provider: LLMProvider | None = None,
    store: ContextStore | None = None,
) -> Runtime:
    """Construct a Runtime; ``provider`` and ``store`` override config."""
    provider = provider or build_provider(config.llm)
    store = store or build_store(config.context_store)
    generation = config.generation
    service = GenerationService(
        provider=provider,
        store=store,
        validator=SQLValidator(),
        max_attempts=generation.max_attempts,
        max_tokens=generation.max_tokens,
        temperature=generation.temperature,
        history_turns=generation.history_turns,
    )
    return Runtime(config=config, provider=provider, store=store, service=service)
