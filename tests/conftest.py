"""Shared pytest fixtures for the Dossier test suite."""

from __future__ import annotations

import hashlib
import math
import random
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocumentChunk, RetrievedChunk
from src.services.embedding_service import cosine_similarity
from src.utils.errors import RAGError

# ---------------------------------------------------------------------------
# Canned LLM replies
# ---------------------------------------------------------------------------

SUMMARY_REPLY = "  Colonel Ivanov met a shipping agent at Port Sudan to arrange a transfer.  "

ENTITY_REPLY = """Here are the entities I found:
```json
[
  {"name": "Col. Ivanov", "type": "person", "description": "Officer", "confidence": "high"},
  {"name": "Port Sudan", "type": "location", "confidence": "medium", "mentions": 2}
]
```"""

RELATIONSHIP_REPLY = (
    '[{"source": "Col. Ivanov", "relation": "visited", "target": "Port Sudan", '
    '"description": "Meeting at the docks", "confidence": "high"}]'
)

CLASSIFICATION_REPLY = (
    '[{"category": "HUMINT", "confidence": 80, "justification": "Source report"}, '
    '{"category": "GEOINT", "confidence": 40}]'
)

RAG_REPLY = "  Colonel Ivanov visited Port Sudan.  "


def canned_completion(system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
    """Return the canned reply matching the prompt template in *user_prompt*."""
    if "ENTITIES (as a JSON array)" in user_prompt:
        return ENTITY_REPLY
    if "RELATIONSHIPS (as a JSON array)" in user_prompt:
        return RELATIONSHIP_REPLY
    if "CLASSIFICATION (as a JSON array)" in user_prompt:
        return CLASSIFICATION_REPLY
    if "SUMMARY:" in user_prompt:
        return SUMMARY_REPLY
    return RAG_REPLY


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider that answers each extraction prompt with valid output.

    Override with ``mock_llm_provider.complete.side_effect = ...`` for
    specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.get_model.return_value = "mock-chat"
    mock.is_available.return_value = True
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.list_models = AsyncMock(return_value=["llama3.2:latest"])
    mock.complete = AsyncMock(side_effect=canned_completion)
    mock.chat = AsyncMock(return_value="Hello from the analyst model.")
    return mock


# ---------------------------------------------------------------------------
# Embedding + vector store fakes
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 64


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector seeded by the SHA-256 of *text*."""
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
    rng = random.Random(seed)
    values = [rng.gauss(0.0, 1.0) for _ in range(dim)]
    magnitude = max(math.sqrt(sum(v * v for v in values)), 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    Texts containing any of *fail_on* raise :class:`RAGError`.
    """

    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self._model = "mock-embed"
        self._fail_on = fail_on
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls += 1
        if any(marker in text for marker in self._fail_on):
            raise RAGError(message="embedding backend rejected text", provider_name="mock")
        return hash_to_vector(text)

    def get_dimension(self) -> int:
        return EMBEDDING_DIM

    def get_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = model

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store backed by a dict keyed by chunk id.

    With ``fail_on_add`` set, :meth:`add_chunks` writes the first chunk and
    then raises, simulating a store that fails halfway through a batch.
    """

    def __init__(self) -> None:
        self._store: dict[str, DocumentChunk] = {}
        self._embedding = MockEmbeddingProvider()
        self.fail_on_add = False

    @property
    def chunks(self) -> list[DocumentChunk]:
        return list(self._store.values())

    async def initialize(self) -> None:
        return None

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> int:
        if embeddings is not None and len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        for index, chunk in enumerate(chunks):
            if self.fail_on_add and index == 1:
                raise RAGError(message="disk full", provider_name="mock-vector-store")
            vector = embeddings[index] if embeddings is not None else chunk.embedding
            if vector is None:
                vector = await self._embedding.embed_single(chunk.text)
            self._store[chunk.chunk_id] = chunk.model_copy(update={"embedding": vector})
        if self.fail_on_add:
            raise RAGError(message="disk full", provider_name="mock-vector-store")
        return len(chunks)

    async def search(
        self,
        query_text: str,
        k: int = 5,
        score_threshold: float = 0.7,
    ) -> list[RetrievedChunk]:
        query_vec = await self._embedding.embed_single(query_text)
        scored = []
        for chunk in self._store.values():
            similarity = max(0.0, cosine_similarity(query_vec, chunk.embedding or []))
            if similarity >= score_threshold:
                scored.append(RetrievedChunk(chunk=chunk, similarity_score=similarity))
        scored.sort(key=lambda rc: rc.similarity_score, reverse=True)
        return scored[:k]

    async def get_chunks_for_document(self, document_id: str) -> list[DocumentChunk]:
        found = [c for c in self._store.values() if c.document_id == document_id]
        return sorted(found, key=lambda c: c.chunk_index)

    async def delete_document(self, document_id: str) -> int:
        doomed = [cid for cid, c in self._store.items() if c.document_id == document_id]
        for cid in doomed:
            del self._store[cid]
        return len(doomed)

    async def list_document_ids(self) -> list[str]:
        return sorted({c.document_id for c in self._store.values()})

    async def get_document_metadata(self, document_id: str) -> dict[str, Any] | None:
        chunks = await self.get_chunks_for_document(document_id)
        if not chunks:
            return None
        return chunks[0].model_dump(mode="json", exclude={"text", "embedding"})

    async def reset(self) -> None:
        self._store.clear()

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    """Mock IVectorStoreProvider backed by an in-memory dict."""
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_report_text() -> str:
    """Multi-paragraph field report for chunker and pipeline tests."""
    return (
        "Field report from the northern coastal sector. Colonel Ivanov arrived "
        "at Port Sudan on the morning of the third and was met by a shipping "
        "agent working for Red Sea Logistics. The meeting lasted under an hour.\n\n"
        "Surveillance teams observed two unmarked trucks leaving the container "
        "terminal shortly afterwards. Both vehicles headed south along the "
        "coastal highway and were lost near the checkpoint at Suakin.\n\n"
        "Open source reporting from local media describes increased activity "
        "at the terminal over the past fortnight. Several crews reported "
        "unscheduled night shifts and restricted access to berth seven.\n\n"
        "Signals collection picked up short encrypted bursts from a handset "
        "registered to the shipping agent. Traffic volume peaked during the "
        "hours the trucks were in transit and stopped entirely by midnight.\n\n"
        "Analyst assessment: the transfer is consistent with earlier movements "
        "of dual-use equipment through the port. Further collection against "
        "Red Sea Logistics is recommended before the next scheduled sailing."
    )


@pytest.fixture
def tmp_chromadb(tmp_path: Path):
    """Create a temporary on-disk ChromaDB client."""
    import chromadb

    persist_dir = str(tmp_path / "chromadb_test")
    client = chromadb.PersistentClient(path=persist_dir)
    return client, persist_dir
