"""Ollama embedding provider adapter (local/free).

Wraps the Ollama OpenAI-compatible ``/v1/embeddings`` endpoint to implement
:class:`IEmbeddingProvider`.  Defaults to ``all-minilm`` (384 dimensions);
any embedding model pulled into Ollama can be selected via settings or
:meth:`set_model`.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import ProviderUnavailableError, RAGError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions; unknown models fall back to settings.
_MODEL_DIMENSIONS: dict[str, int] = {
    "all-minilm:latest": 384,
    "all-minilm": 384,
    "nomic-embed-text:latest": 768,
    "nomic-embed-text": 768,
    "mxbai-embed-large:latest": 1024,
}


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an embedding model served via Ollama.

    One request per :meth:`embed` call; batching and concurrency limits
    are the caller's concern (see
    :class:`~src.services.embedding_service.EmbeddingService`).
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=settings.request_timeout,
            max_retries=0,
        )
        self._model = settings.ollama_embedding_model
        self._dimension = _MODEL_DIMENSIONS.get(self._model, settings.ollama_embedding_dimension)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for *texts* in a single request."""
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(input=texts, model=self._model)
        except (openai.APIConnectionError, openai.APITimeoutError) as exc:
            raise ProviderUnavailableError(
                message=f"Ollama unreachable at {self._base_url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise RAGError(
                message=f"Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        vectors = [item.embedding for item in response.data]
        if len(vectors) != len(texts):
            raise RAGError(
                message=f"Ollama returned {len(vectors)} embeddings for {len(texts)} inputs",
                provider_name=self.get_provider_name(),
            )
        logger.debug("ollama_embedding", model=self._model, count=len(vectors))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        logger.info("ollama_embedding_model_changed", previous=self._model, current=model)
        self._model = model
        self._dimension = _MODEL_DIMENSIONS.get(model, self._settings.ollama_embedding_dimension)

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server is reachable."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False
