"""Abstract base class for vector-store service providers.

Defines the contract for persisting embedded document chunks and answering
nearest-neighbour queries.  The store owns its collection lifecycle
(create-if-missing, reset); callers never see backend-specific metadata
formats.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.rag import DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the indexing pipeline.

    All methods are async so network-backed stores never block the event
    loop.  Implementations are shared by every concurrent pipeline run and
    must serialise internally whatever their backend requires.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the backing collection if absent, attach to it if present.

        Safe to call repeatedly and concurrently; only one creation
        happens and every caller observes the same ready collection.

        Raises
        ------
        src.utils.errors.RAGError
            If the collection cannot be opened.
        """

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> int:
        """Upsert chunks into the store.

        Parameters
        ----------
        chunks:
            The chunks to store.  ``chunk_id`` is the primary key.
        embeddings:
            Optional vectors matching *chunks* positionally.  When omitted,
            each chunk's own ``embedding`` is used, and chunks without one
            are embedded first.

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        ValueError
            If *embeddings* is given with a different length than *chunks*.
        src.utils.errors.RAGError
            If the store operation fails.
        """

    @abstractmethod
    async def search(
        self,
        query_text: str,
        k: int = 5,
        score_threshold: float = 0.7,
    ) -> list[RetrievedChunk]:
        """Return up to *k* chunks scoring at least *score_threshold*.

        Results are ordered by similarity, highest first.

        Raises
        ------
        src.utils.errors.RAGError
            If embedding the query or querying the store fails.
        """

    @abstractmethod
    async def get_chunks_for_document(self, document_id: str) -> list[DocumentChunk]:
        """Return every stored chunk of a document ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> int:
        """Remove all chunks of a document; returns how many were removed (0 is fine)."""

    @abstractmethod
    async def list_document_ids(self) -> list[str]:
        """Return the distinct document ids across all stored chunks."""

    @abstractmethod
    async def get_document_metadata(self, document_id: str) -> dict[str, Any] | None:
        """Return the decoded metadata of a document's first chunk, if stored."""

    @abstractmethod
    async def reset(self) -> None:
        """Destroy and recreate the collection."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the collection is reachable."""
