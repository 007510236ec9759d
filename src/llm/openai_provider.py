"""OpenAI-compatible chat completions backend (OpenAI, OpenRouter, Kimi)."""

import logging
import os
from dataclasses import dataclass

import httpx

from src.llm.base import CompletionResult, LLMProvider, Message, ProviderError, Usage

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 60.0


@dataclass(frozen=True)
class OpenAIPreset:
    """Defaults for one OpenAI-compatible service."""

    name: str
    base_url: str
    model: str
    api_key_env: str


PRESETS: dict[str, OpenAIPreset] = {
    "openai": OpenAIPreset(
        name="openai",
        base_url="https://api.openai.com/v1",
        model="gpt-4o",
        api_key_env="OPENAI_API_KEY",
    ),
    "openrouter": OpenAIPreset(
        name="openrouter",
        base_url="https://openrouter.ai/api/v1",
        model="anthropic/claude-3-haiku",
        api_key_env="OPENROUTER_API_KEY",
    ),
    "kimi": OpenAIPreset(
        name="kimi",
        base_url="https://api.moonshot.cn/v1",
        model="kimi-k2.5",
        api_key_env="MOONSHOT_API_KEY",
    ),
}


class OpenAICompatibleProvider(LLMProvider):
    """POST ``{base_url}/chat/completions`` with a bearer key."""

    def __init__(
        self,
        preset: str = "openai",
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if preset not in PRESETS:
            raise ValueError(f"Unknown OpenAI-compatible preset: {preset}")
        defaults = PRESETS[preset]
        self._name = defaults.name
        self._api_key = api_key or os.environ.get(defaults.api_key_env, "")
        self._base_url = (base_url or defaults.base_url).rstrip("/")
        self._model = model or defaults.model
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult:
        payload = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            resp = await self._client.post(
                f"{self._base_url}/chat/completions",
                json=payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if resp.status_code != 200:
            raise ProviderError(
                self.name,
                f"status {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(self.name, "response is not valid JSON") from e

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError(self.name, "no choices in response")

        text = (choices[0].get("message") or {}).get("content") or ""
        raw_usage = data.get("usage") or {}
        usage = Usage(
            prompt_tokens=raw_usage.get("prompt_tokens", 0),
            completion_tokens=raw_usage.get("completion_tokens", 0),
            total_tokens=raw_usage.get("total_tokens", 0),
        )
        logger.debug("%s completion: %d total tokens", self.name, usage.total_tokens)
        return CompletionResult(text=text, usage=usage, model=self._model)

    async def aclose(self) -> None:
        await self._client.aclose()
