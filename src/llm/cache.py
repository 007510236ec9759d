"""Response cache wrapping any LLMProvider.

Entries expire lazily: an expired entry is dropped when it is next looked
up or when the cache is full. No background task is started, so the cache
needs no lifecycle of its own beyond closing the wrapped provider.
"""

import hashlib
import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from src.llm.base import CompletionResult, LLMProvider, Message

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024


def cache_key(
    model: str,
    messages: list[Message],
    max_tokens: int,
    temperature: float,
) -> str:
    """SHA-256 over model name, every role and content, and sampling params."""
    digest = hashlib.sha256()
    digest.update(model.encode("utf-8"))
    for message in messages:
        digest.update(b"\x00")
        digest.update(message.role.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(message.content.encode("utf-8"))
    digest.update(f"\x00{max_tokens}\x00{temperature}".encode("utf-8"))
    return digest.hexdigest()


class CachedProvider(LLMProvider):
    """Decorator that memoizes completions for ``ttl_seconds``.

    Args:
        provider: Wrapped backend.
        ttl_seconds: Lifetime of an entry.
        max_entries: Oldest entries are evicted beyond this size.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        provider: LLMProvider,
        ttl_seconds: float,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._provider = provider
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, CompletionResult]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @property
    def name(self) -> str:
        return self._provider.name

    @property
    def model(self) -> str:
        return self._provider.model

    def __len__(self) -> int:
        return len(self._entries)

    async def complete(
        self,
        messages: list[Message],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult:
        key = cache_key(
            f"{self._provider.name}:{self._provider.model}",
            messages,
            max_tokens,
            temperature,
        )
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            expires_at, result = entry
            if now < expires_at:
                self.hits += 1
                logger.debug("completion cache hit")
                return result.model_copy(deep=True)
            del self._entries[key]

        self.misses += 1
        result = await self._provider.complete(messages, max_tokens, temperature)
        self._store(key, result, now)
        return result

    def _store(self, key: str, result: CompletionResult, now: float) -> None:
        self._entries[key] = (now + self._ttl, result.model_copy(deep=True))
        self._entries.move_to_end(key)
        if len(self._entries) > self._max_entries:
            self._evict_expired(now)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        """Drop every cached entry."""
        self._entries.clear()

    async def aclose(self) -> None:
        self.clear()
        await self._provider.aclose()
