"""Anthropic Messages API backend."""

import logging

from anthropic import APIError, APIStatusError, AsyncAnthropic

from src.llm.base import (
    CompletionResult,
    LLMProvider,
    Message,
    ProviderError,
    Usage,
    split_system_messages,
)
from src.text2sql.nl_engine.config import get_model

logger = logging.getLogger(__name__)


def _merge_consecutive(messages: list[Message]) -> list[dict[str, str]]:
    """Collapse adjacent same-role messages so roles alternate."""
    merged: list[dict[str, str]] = []
    for message in messages:
        if merged and merged[-1]["role"] == message.role:
            merged[-1]["content"] += "\n\n" + message.content
        else:
            merged.append({"role": message.role, "content": message.content})
    return merged


class AnthropicProvider(LLMProvider):
    """Claude via ``anthropic.AsyncAnthropic``.

    System messages are moved into the ``system`` parameter.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = model or get_model()
        if client is None:
            kwargs: dict = {"timeout": timeout}
            if api_key:
                kwargs["api_key"] = api_key
            if base_url:
                kwargs["base_url"] = base_url
            client = AsyncAnthropic(**kwargs)
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult:
        system, conversation = split_system_messages(messages)
        kwargs: dict = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": _merge_consecutive(conversation),
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except APIStatusError as e:
            raise ProviderError(self.name, str(e), status_code=e.status_code) from e
        except APIError as e:
            raise ProviderError(self.name, str(e)) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text:
            raise ProviderError(self.name, "empty response")

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )
        logger.debug("anthropic completion: %d output tokens", usage.completion_tokens)
        return CompletionResult(text=text, usage=usage, model=self._model)

    async def aclose(self) -> None:
        await self._client.close()
