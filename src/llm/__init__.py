"""Language-model backends behind a single completion capability."""

from src.llm.base import (
    CompletionResult,
    LLMProvider,
    Message,
    ProviderError,
    Usage,
)
from src.llm.cache import CachedProvider

__all__ = [
    "CompletionResult",
    "LLMProvider",
    "Message",
    "ProviderError",
    "Usage",
    "CachedProvider",
]
