"""Abstract base class for LLM service providers.

Defines the contract for the language-model backend used for chunk
enrichment (summary, entities, relationships, classification), grounded
answer generation, and free-form chat.  The default implementation talks
to a local Ollama server; any chat-capable backend can be swapped in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used throughout the Dossier pipeline.

    Every call is a network round trip and may fail; implementations raise
    :class:`~src.utils.errors.LLMError` for API failures and
    :class:`~src.utils.errors.ProviderUnavailableError` when the backend
    cannot be reached at all.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        src.utils.errors.LLMError
            If the API call fails or returns an empty response.
        src.utils.errors.ProviderUnavailableError
            If the backend cannot be reached.
        """

    @abstractmethod
    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send a full ``[{role, content}, ...]`` conversation and return the reply.

        Raises
        ------
        src.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the names of models installed on the backend.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the backend cannot be reached.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Return ``True`` if the backend answers a lightweight health probe.

        Never raises; an unreachable backend is reported as ``False``.
        """

    @abstractmethod
    def get_model(self) -> str:
        """Return the chat model currently in use."""

    @abstractmethod
    def set_model(self, model: str) -> None:
        """Switch the chat model used for subsequent calls."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"ollama"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (no network call)."""
