"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-dimensionality vectors.
Embeddings are consumed by the vector store for indexing and by
:class:`~src.services.embedding_service.EmbeddingService` for query-time
similarity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaEmbeddingProvider
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the indexing pipeline."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            One vector per input text, in the same order.

        Raises
        ------
        src.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Raises
        ------
        src.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors produced."""

    @abstractmethod
    def get_model(self) -> str:
        """Return the embedding model currently in use."""

    @abstractmethod
    def set_model(self, model: str) -> None:
        """Switch the embedding model used for subsequent calls."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"ollama_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the embedding backend is configured."""
