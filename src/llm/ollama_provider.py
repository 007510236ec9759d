"""Ollama local-model backend (``/api/chat``, non-streaming)."""

import logging

import httpx

from src.llm.base import CompletionResult, LLMProvider, Message, ProviderError, Usage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3"


class OllamaProvider(LLMProvider):
    """Chat completion against a local Ollama server."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._model = model or DEFAULT_MODEL
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult:
        options: dict = {}
        if max_tokens > 0:
            options["num_predict"] = max_tokens
        if temperature > 0:
            options["temperature"] = temperature
        payload = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "stream": False,
            "options": options,
        }

        try:
            resp = await self._client.post(f"{self._base_url}/api/chat", json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if resp.status_code != 200:
            raise ProviderError(
                self.name,
                f"unexpected status {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(self.name, "response is not valid JSON") from e

        text = ((data.get("message") or {}).get("content") or "").strip()
        # Ollama reports only generated tokens
        eval_count = data.get("eval_count", 0) or 0
        usage = Usage(
            prompt_tokens=data.get("prompt_eval_count", 0) or 0,
            completion_tokens=eval_count,
            total_tokens=eval_count + (data.get("prompt_eval_count", 0) or 0),
        )
        return CompletionResult(text=text, usage=usage, model=self._model)

    async def aclose(self) -> None:
        await self._client.aclose()
