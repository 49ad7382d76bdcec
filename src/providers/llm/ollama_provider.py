"""Ollama LLM provider adapter.

Wraps a local Ollama server.  Chat and completion go through Ollama's
OpenAI-compatible ``/v1`` endpoint using the ``openai`` client library;
model listing and the health probe use ``httpx`` against the native
``/api/tags`` endpoint, which lists installed models without running
inference.

Setup: install Ollama (https://ollama.ai), ``ollama pull llama3.2`` and
``ollama pull all-minilm``, then set ``OLLAMA_BASE_URL`` if the server is
not on ``http://localhost:11434``.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import LLMError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server.

    Ollama speaks the OpenAI chat protocol on ``/v1``, so this adapter
    reuses ``openai.AsyncOpenAI`` with a different ``base_url`` instead of
    a hand-written client.  The request timeout from settings applies to
    every call.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._timeout = settings.request_timeout
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key but the SDK requires a non-empty one.
            api_key="ollama",
            timeout=self._timeout,
            max_retries=0,
        )
        self._model = settings.ollama_chat_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion via Ollama's OpenAI-compatible API."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._create(messages, temperature=temperature, max_tokens=max_tokens)

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send a full conversation and return the assistant reply."""
        if not messages:
            raise LLMError(
                message="chat() requires at least one message",
                provider_name=self.get_provider_name(),
            )
        return await self._create(messages)

    async def list_models(self) -> list[str]:
        """Return installed model names from ``/api/tags``."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Could not list Ollama models: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        models = response.json().get("models") or []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]

    async def validate_credentials(self) -> bool:
        """Return ``True`` if the Ollama server answers ``/api/tags``."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        logger.info("ollama_chat_model_changed", previous=self._model, current=model)
        self._model = model

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    def get_provider_name(self) -> str:
        return "ollama"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(
        self,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: dict = {"model": self._model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except (openai.APIConnectionError, openai.APITimeoutError) as exc:
            raise ProviderUnavailableError(
                message=f"Ollama unreachable at {self._base_url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.debug("ollama_completion", model=self._model, chars=len(content))
        return content
