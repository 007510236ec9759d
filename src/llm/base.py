"""Model-call capability shared by all language-model backends.

The generation service depends only on LLMProvider.complete(). Concrete
backends are chosen at startup by src.llm.factory.build_provider and
passed in explicitly.
"""

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    """One chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class Usage(BaseModel):
    """Token accounting reported by the backend, zero when unknown."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResult(BaseModel):
    """Text returned by a completion call."""

    text: str
    usage: Usage = Field(default_factory=Usage)
    model: str = ""


class ProviderError(Exception):
    """A backend call failed (transport error, non-2xx status, empty reply).

    Attributes:
        provider: Backend name.
        status_code: HTTP status when the failure came from a response.
    """

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class LLMProvider(ABC):
    """Capability interface: turn a message list into completion text."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name used in logs and cache keys."""

    @property
    def model(self) -> str:
        return ""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult:
        """Run one completion.

        Raises:
            ProviderError: If the backend call fails.
        """

    async def aclose(self) -> None:
        """Release network resources. Default is a no-op."""

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def split_system_messages(messages: list[Message]) -> tuple[str, list[Message]]:
    """Separate system messages from the conversation.

    Returns the system instructions joined by blank lines and the
    remaining user/assistant messages in order.
    """
    system_parts = [m.content for m in messages if m.role == "system"]
    rest = [m for m in messages if m.role != "system"]
    return "\n\n".join(system_parts), rest
