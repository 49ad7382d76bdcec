"""Unit tests for IndexingCoordinator — the indexing queue state machine.

The coordinator runs with the real chunker, metadata extractor and
embedding service on top of mock LLM, embedding and vector-store
backends, so every test exercises the full pipeline path.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.pipeline import IndexingStatus, QueueItem
from src.models.rag import ChunkEnrichment, ChunkingOptions
from src.pipeline.indexing_coordinator import IndexingCoordinator
from src.pipeline.progress_tracker import ProgressTracker
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.metadata_extractor import MetadataExtractor
from src.utils.errors import DocumentBusyError, QueueFullError, ValidationError
from tests.conftest import MockEmbeddingProvider, MockVectorStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_coordinator(
    llm,
    vector_store: MockVectorStore,
    embedding_provider: MockEmbeddingProvider | None = None,
    metadata_extractor=None,
    **kwargs,
) -> IndexingCoordinator:
    return IndexingCoordinator(
        chunker=TextChunker(),
        metadata_extractor=metadata_extractor or MetadataExtractor(llm),
        embedding_service=EmbeddingService(embedding_provider or MockEmbeddingProvider()),
        vector_store=vector_store,
        chunking_options=ChunkingOptions(chunk_size=200, chunk_overlap=20),
        **kwargs,
    )


class _BlockingExtractor:
    """Stand-in extractor whose enrich() waits until released.

    Records the peak number of enrich() calls in flight.
    """

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.active = 0
        self.peak = 0

    async def enrich(self, chunk_text: str) -> ChunkEnrichment:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await self.release.wait()
        finally:
            self.active -= 1
        return ChunkEnrichment(summary="held")


async def _wait_for_status(
    coordinator: IndexingCoordinator,
    document_id: str,
    status: IndexingStatus,
) -> QueueItem:
    for _ in range(200):
        item = coordinator.get_item(document_id)
        if item is not None and item.status is status:
            return item
        await asyncio.sleep(0)
    raise AssertionError(f"{document_id} never reached {status.value}")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_document_is_indexed(
        self, mock_llm_provider, mock_vector_store, sample_report_text: str
    ) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        document_id = await coordinator.enqueue("Port report", sample_report_text)
        assert coordinator.get_item(document_id).status is IndexingStatus.PENDING

        await coordinator.wait_until_idle()

        item = coordinator.get_item(document_id)
        assert item.status is IndexingStatus.COMPLETED
        assert item.progress == 100
        assert item.start_time is not None
        assert item.end_time is not None

        stored = await mock_vector_store.get_chunks_for_document(document_id)
        assert len(stored) > 1
        assert all(c.title == "Port report" for c in stored)
        assert all(c.category == "HUMINT" for c in stored)
        assert all(c.embedding is not None for c in stored)
        assert {c.summary for c in stored} == {
            "Colonel Ivanov met a shipping agent at Port Sudan to arrange a transfer."
        }

    @pytest.mark.asyncio
    async def test_only_first_chunk_is_enriched(
        self, mock_llm_provider, mock_vector_store, sample_report_text: str
    ) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        await coordinator.enqueue("Port report", sample_report_text)
        await coordinator.wait_until_idle()

        assert mock_llm_provider.complete.await_count == 4

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        ids = [await coordinator.enqueue(f"Doc {i}", "Some content.") for i in range(5)]
        await coordinator.wait_until_idle()

        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("title", "content"), [("", "body"), ("  ", "body"), ("Title", ""), ("Title", " \n")])
    async def test_blank_input_rejected(
        self, mock_llm_provider, mock_vector_store, title: str, content: str
    ) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        with pytest.raises(ValidationError):
            await coordinator.enqueue(title, content)
        assert coordinator.get_queue_status().total == 0

    @pytest.mark.asyncio
    async def test_queue_full(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, max_queue_size=10)

        for i in range(10):
            await coordinator.enqueue(f"Doc {i}", "content")
        with pytest.raises(QueueFullError):
            await coordinator.enqueue("One too many", "content")

        await coordinator.wait_until_idle()
        # Terminal items still occupy capacity until cleared.
        with pytest.raises(QueueFullError):
            await coordinator.enqueue("Still full", "content")
        assert coordinator.clear_completed_and_failed() == 10
        await coordinator.enqueue("Room again", "content")
        await coordinator.wait_until_idle()


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, mock_llm_provider, mock_vector_store) -> None:
        tracker = ProgressTracker()
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, progress_tracker=tracker)
        seen: list[tuple[IndexingStatus, int]] = []

        document_id = await coordinator.enqueue("Report", "A short field report.")
        tracker.register_listener(document_id, lambda item: seen.append((item.status, item.progress)))
        await coordinator.wait_until_idle()

        assert [p for _, p in seen] == [0, 10, 30, 50, 80, 100]
        assert [s for s, _ in seen[:-1]] == [IndexingStatus.PROCESSING] * 5
        assert seen[-1][0] is IndexingStatus.COMPLETED
        assert tracker.get_status(document_id).status is IndexingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_coordinator_exposes_its_tracker(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)
        assert isinstance(coordinator.progress_tracker, ProgressTracker)


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(
            mock_llm_provider,
            mock_vector_store,
            embedding_provider=MockEmbeddingProvider(fail_on=("POISON",)),
            concurrent_processing=2,
        )

        bad = await coordinator.enqueue("Bad", "This one contains POISON.")
        good = await coordinator.enqueue("Good", "This one is fine.")
        await coordinator.wait_until_idle()

        bad_item, good_item = coordinator.get_item(bad), coordinator.get_item(good)
        assert bad_item.status is IndexingStatus.FAILED
        assert "embedding backend rejected text" in bad_item.error
        assert bad_item.end_time is not None
        assert good_item.status is IndexingStatus.COMPLETED
        assert await mock_vector_store.list_document_ids() == [good]

    @pytest.mark.asyncio
    async def test_enrichment_failure_fails_document(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = MagicMock()
        extractor.enrich = AsyncMock(side_effect=RuntimeError("model exploded"))
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, metadata_extractor=extractor)

        document_id = await coordinator.enqueue("Report", "content")
        await coordinator.wait_until_idle()

        item = coordinator.get_item(document_id)
        assert item.status is IndexingStatus.FAILED
        assert item.error == "model exploded"
        assert item.progress == 30

    @pytest.mark.asyncio
    async def test_failed_write_is_rolled_back(
        self, mock_llm_provider, mock_vector_store, sample_report_text: str
    ) -> None:
        mock_vector_store.fail_on_add = True
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        document_id = await coordinator.enqueue("Report", sample_report_text)
        await coordinator.wait_until_idle()

        assert coordinator.get_item(document_id).status is IndexingStatus.FAILED
        assert "disk full" in coordinator.get_item(document_id).error
        assert mock_vector_store.chunks == []

    @pytest.mark.asyncio
    async def test_queue_keeps_draining_after_failure(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(
            mock_llm_provider,
            mock_vector_store,
            embedding_provider=MockEmbeddingProvider(fail_on=("POISON",)),
        )

        first = await coordinator.enqueue("Bad", "POISON")
        second = await coordinator.enqueue("Good", "clean")
        await coordinator.wait_until_idle()

        assert coordinator.get_item(first).status is IndexingStatus.FAILED
        assert coordinator.get_item(second).status is IndexingStatus.COMPLETED


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = _BlockingExtractor()
        coordinator = _make_coordinator(
            mock_llm_provider, mock_vector_store, metadata_extractor=extractor, concurrent_processing=2
        )

        ids = [await coordinator.enqueue(f"Doc {i}", f"content {i}") for i in range(5)]
        await _wait_for_status(coordinator, ids[1], IndexingStatus.PROCESSING)
        status = coordinator.get_queue_status()
        assert status.processing == 2
        assert status.pending == 3

        extractor.release.set()
        await coordinator.wait_until_idle()

        assert extractor.peak == 2
        assert coordinator.get_queue_status().completed == 5

    @pytest.mark.asyncio
    async def test_documents_start_in_enqueue_order(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = _BlockingExtractor()
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, metadata_extractor=extractor)

        first = await coordinator.enqueue("First", "one")
        second = await coordinator.enqueue("Second", "two")
        await _wait_for_status(coordinator, first, IndexingStatus.PROCESSING)

        assert coordinator.get_item(second).status is IndexingStatus.PENDING
        extractor.release.set()
        await coordinator.wait_until_idle()

    def test_setters_clamp(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        assert coordinator.set_concurrent_processing(0) == 1
        assert coordinator.set_concurrent_processing(50) == 10
        assert coordinator.set_concurrent_processing(3) == 3
        assert coordinator.concurrent_processing == 3
        assert coordinator.set_max_queue_size(3) == 10
        assert coordinator.set_max_queue_size(500) == 500
        assert coordinator.max_queue_size == 500

    def test_constructor_clamps(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(
            mock_llm_provider, mock_vector_store, concurrent_processing=99, max_queue_size=1
        )

        assert coordinator.concurrent_processing == 10
        assert coordinator.max_queue_size == 10


class TestQueueManagement:
    @pytest.mark.asyncio
    async def test_remove_pending_item(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = _BlockingExtractor()
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, metadata_extractor=extractor)

        first = await coordinator.enqueue("First", "one")
        second = await coordinator.enqueue("Second", "two")
        await _wait_for_status(coordinator, first, IndexingStatus.PROCESSING)

        assert coordinator.remove_from_queue(first) is False
        assert coordinator.remove_from_queue(second) is True
        assert coordinator.remove_from_queue("unknown") is False
        assert coordinator.get_item(second) is None

        extractor.release.set()
        await coordinator.wait_until_idle()
        assert await mock_vector_store.list_document_ids() == [first]

    @pytest.mark.asyncio
    async def test_clear_completed_and_failed(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(
            mock_llm_provider,
            mock_vector_store,
            embedding_provider=MockEmbeddingProvider(fail_on=("POISON",)),
        )

        await coordinator.enqueue("Good", "clean")
        await coordinator.enqueue("Bad", "POISON")
        await coordinator.wait_until_idle()

        assert coordinator.clear_completed_and_failed() == 2
        assert coordinator.get_queue_status().total == 0
        assert coordinator.clear_completed_and_failed() == 0

    @pytest.mark.asyncio
    async def test_delete_document(self, mock_llm_provider, mock_vector_store, sample_report_text: str) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        document_id = await coordinator.enqueue("Report", sample_report_text)
        await coordinator.wait_until_idle()
        stored = len(await mock_vector_store.get_chunks_for_document(document_id))

        assert await coordinator.delete_document(document_id) == stored
        assert coordinator.get_item(document_id) is None
        assert await coordinator.delete_document(document_id) == 0

    @pytest.mark.asyncio
    async def test_delete_while_processing_is_rejected(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = _BlockingExtractor()
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, metadata_extractor=extractor)

        document_id = await coordinator.enqueue("Report", "content")
        await _wait_for_status(coordinator, document_id, IndexingStatus.PROCESSING)

        with pytest.raises(DocumentBusyError):
            await coordinator.delete_document(document_id)

        extractor.release.set()
        await coordinator.wait_until_idle()

    @pytest.mark.asyncio
    async def test_shutdown_fails_in_flight_documents(self, mock_llm_provider, mock_vector_store) -> None:
        extractor = _BlockingExtractor()
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store, metadata_extractor=extractor)

        running = await coordinator.enqueue("Running", "one")
        waiting = await coordinator.enqueue("Waiting", "two")
        await _wait_for_status(coordinator, running, IndexingStatus.PROCESSING)

        await coordinator.shutdown()

        item = coordinator.get_item(running)
        assert item.status is IndexingStatus.FAILED
        assert item.error == "Indexing interrupted by shutdown"
        assert coordinator.get_item(waiting).status is IndexingStatus.PENDING
        assert coordinator.is_draining is False

    @pytest.mark.asyncio
    async def test_drain_restarts_after_idle(self, mock_llm_provider, mock_vector_store) -> None:
        coordinator = _make_coordinator(mock_llm_provider, mock_vector_store)

        first = await coordinator.enqueue("First", "one")
        await coordinator.wait_until_idle()
        assert coordinator.is_draining is False

        second = await coordinator.enqueue("Second", "two")
        await coordinator.wait_until_idle()

        assert coordinator.get_item(first).status is IndexingStatus.COMPLETED
        assert coordinator.get_item(second).status is IndexingStatus.COMPLETED
