"""End-to-end indexing against a real on-disk ChromaDB collection.

Upload -> chunk -> enrich -> embed -> persist -> search -> grounded answer,
with the LLM and embedding backends mocked and everything else real.
"""

from __future__ import annotations

import pytest

from src.models.pipeline import IndexingStatus
from src.models.rag import ChunkingOptions
from src.pipeline.indexing_coordinator import IndexingCoordinator
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.metadata_extractor import MetadataExtractor
from src.services.rag_service import RetrievalService
from tests.conftest import MockEmbeddingProvider


@pytest.fixture()
def chroma_store(tmp_chromadb, mock_embedding_provider) -> ChromaDBProvider:
    client, persist_dir = tmp_chromadb
    return ChromaDBProvider(
        embedding_provider=mock_embedding_provider,
        persist_directory=persist_dir,
        collection_name="pipeline_test",
        client=client,
    )


def _make_coordinator(llm, store: ChromaDBProvider, embedding_provider, **kwargs) -> IndexingCoordinator:
    return IndexingCoordinator(
        chunker=TextChunker(),
        metadata_extractor=MetadataExtractor(llm, max_concurrent=2),
        embedding_service=EmbeddingService(embedding_provider, batch_size=3),
        vector_store=store,
        chunking_options=ChunkingOptions(chunk_size=250, chunk_overlap=30),
        **kwargs,
    )


class TestIndexingPipeline:
    @pytest.mark.asyncio
    async def test_index_search_and_answer(
        self, mock_llm_provider, mock_embedding_provider, chroma_store, sample_report_text: str
    ) -> None:
        coordinator = _make_coordinator(mock_llm_provider, chroma_store, mock_embedding_provider)

        document_id = await coordinator.enqueue("Port report", sample_report_text, source="field")
        await coordinator.wait_until_idle()
        assert coordinator.get_item(document_id).status is IndexingStatus.COMPLETED

        chunks = await chroma_store.get_chunks_for_document(document_id)
        assert len(chunks) > 1
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)
        assert all(c.category == "HUMINT" for c in chunks)
        assert all(c.source == "field" for c in chunks)
        assert chunks[0].entities[0].name == "Col. Ivanov"

        retrieval = RetrievalService(mock_llm_provider, chroma_store)
        result = await retrieval.answer(chunks[1].text)

        assert result.answer == "Colonel Ivanov visited Port Sudan."
        assert result.sources[0].chunk.chunk_id == chunks[1].chunk_id
        assert result.sources[0].similarity_score > 0.99

    @pytest.mark.asyncio
    async def test_concurrent_documents_share_one_collection(
        self, mock_llm_provider, mock_embedding_provider, chroma_store
    ) -> None:
        coordinator = _make_coordinator(
            mock_llm_provider, chroma_store, mock_embedding_provider, concurrent_processing=3
        )

        ids = [await coordinator.enqueue(f"Cable {i}", f"Cable number {i} reports movement.") for i in range(6)]
        await coordinator.wait_until_idle()

        assert coordinator.get_queue_status().completed == 6
        assert await chroma_store.list_document_ids() == sorted(ids)

    @pytest.mark.asyncio
    async def test_failed_document_leaves_no_chunks(
        self, mock_llm_provider, chroma_store, sample_report_text: str
    ) -> None:
        # Poison the last paragraph so embedding fails after earlier chunks succeed.
        text = sample_report_text + "\n\nPOISON appendix."
        coordinator = _make_coordinator(
            mock_llm_provider, chroma_store, MockEmbeddingProvider(fail_on=("POISON",))
        )

        document_id = await coordinator.enqueue("Port report", text)
        await coordinator.wait_until_idle()

        assert coordinator.get_item(document_id).status is IndexingStatus.FAILED
        assert await chroma_store.get_chunks_for_document(document_id) == []

    @pytest.mark.asyncio
    async def test_delete_then_reindex(
        self, mock_llm_provider, mock_embedding_provider, chroma_store
    ) -> None:
        coordinator = _make_coordinator(mock_llm_provider, chroma_store, mock_embedding_provider)

        first = await coordinator.enqueue("Cable", "Berth seven was closed overnight.")
        await coordinator.wait_until_idle()
        assert await coordinator.delete_document(first) == 1

        second = await coordinator.enqueue("Cable", "Berth seven was closed overnight.")
        await coordinator.wait_until_idle()

        assert await chroma_store.list_document_ids() == [second]
