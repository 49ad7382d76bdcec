"""Asynchronous indexing queue for uploaded documents.

The coordinator owns the only shared mutable state in the indexing path:
the ordered list of :class:`~src.models.pipeline.QueueItem` records.  An
upload is enqueued as ``pending`` and a single background drain task
works through the queue, ``concurrent_processing`` documents at a time.
Each document runs the same fixed pipeline::

    chunk (30%) -> enrich first chunk (50%) -> embed all chunks (80%)
        -> persist -> completed (100%)

Any exception marks the document ``failed`` with the error message.  The
store write is all-or-nothing: every chunk is embedded before anything is
persisted, and a failed write is rolled back so a failed document leaves
no chunks behind.

Queue items are frozen and replaced wholesale.  Every replacement happens
between two awaits, so concurrent pipeline runs on the event loop never
observe a half-updated item and no lock is needed.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from typing import Any

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.pipeline import IndexingStatus, QueueItem, QueueStatus
from src.models.rag import ChunkingOptions, Document, DocumentChunk
from src.pipeline.progress_tracker import ProgressTracker
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.metadata_extractor import MetadataExtractor
from src.utils.errors import DocumentBusyError, QueueFullError, ValidationError
from src.utils.logging import bind_document_context, clear_document_context, get_logger

_MIN_CONCURRENCY = 1
_MAX_CONCURRENCY = 10
_MIN_QUEUE_SIZE = 10

_PROGRESS_STARTED = 10
_PROGRESS_CHUNKED = 30
_PROGRESS_ENRICHED = 50
_PROGRESS_EMBEDDED = 80


class IndexingCoordinator:
    """Queues documents and drives them through the indexing pipeline.

    All collaborators are injected; the coordinator never builds them.

    Parameters
    ----------
    chunker:
        Splits each document into chunks.
    metadata_extractor:
        Enriches the first chunk of each document.
    embedding_service:
        Embeds every chunk before persistence.
    vector_store:
        Persistent chunk store.
    progress_tracker:
        Receives every queue-item change; a private one is created if
        omitted.
    chunking_options:
        Options passed to the chunker for every document.
    concurrent_processing:
        Documents processed at once, clamped to [1, 10].
    max_queue_size:
        Queue capacity (all items, terminal ones included), minimum 10.
    """

    def __init__(
        self,
        chunker: TextChunker,
        metadata_extractor: MetadataExtractor,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        progress_tracker: ProgressTracker | None = None,
        chunking_options: ChunkingOptions | None = None,
        concurrent_processing: int = 1,
        max_queue_size: int = 100,
    ) -> None:
        self._chunker = chunker
        self._metadata_extractor = metadata_extractor
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._progress_tracker = progress_tracker or ProgressTracker()
        self._chunking_options = chunking_options

        self._queue: list[QueueItem] = []
        self._documents: dict[str, Document] = {}
        self._drain_task: asyncio.Task | None = None
        self._concurrent_processing = _MIN_CONCURRENCY
        self._max_queue_size = max_queue_size
        self.set_concurrent_processing(concurrent_processing)
        self.set_max_queue_size(max_queue_size)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def concurrent_processing(self) -> int:
        return self._concurrent_processing

    @property
    def max_queue_size(self) -> int:
        return self._max_queue_size

    @property
    def progress_tracker(self) -> ProgressTracker:
        return self._progress_tracker

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        title: str,
        content: str,
        source: str = "upload",
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Queue a document for indexing and return its new id.

        Starts the drain task if none is running.

        Raises
        ------
        ValidationError
            If *title* or *content* is empty.
        QueueFullError
            If the queue already holds ``max_queue_size`` items.
        """
        if not title or not title.strip():
            raise ValidationError(message="Document title must not be empty")
        if not content or not content.strip():
            raise ValidationError(message="Document content must not be empty")
        if len(self._queue) >= self._max_queue_size:
            raise QueueFullError()

        document = Document(
            document_id=str(uuid.uuid4()),
            title=title.strip(),
            content=content,
            source=source or "upload",
            metadata=dict(metadata or {}),
        )
        item = QueueItem(document_id=document.document_id, title=document.title)
        self._documents[document.document_id] = document
        self._queue.append(item)

        self._logger.info(
            "document_enqueued",
            document_id=document.document_id,
            title=document.title,
            content_length=len(content),
            queue_length=len(self._queue),
        )
        await self._progress_tracker.publish(item)
        self._ensure_draining()
        return document.document_id

    def get_queue_status(self) -> QueueStatus:
        """Return per-status counts and a snapshot of every queue item."""
        return QueueStatus.from_items(self._queue)

    def get_item(self, document_id: str) -> QueueItem | None:
        return self._find(document_id)

    def clear_completed_and_failed(self) -> int:
        """Drop every terminal item; return how many were removed."""
        kept = [item for item in self._queue if not item.status.is_terminal]
        removed = [item for item in self._queue if item.status.is_terminal]
        self._queue = kept
        for item in removed:
            self._progress_tracker.forget(item.document_id)
        self._logger.info("queue_cleared", removed=len(removed), remaining=len(kept))
        return len(removed)

    def remove_from_queue(self, document_id: str) -> bool:
        """Remove a non-processing item; ``False`` if absent or processing."""
        item = self._find(document_id)
        if item is None or item.status is IndexingStatus.PROCESSING:
            return False
        self._drop(document_id)
        self._logger.info("queue_item_removed", document_id=document_id, status=item.status.value)
        return True

    async def delete_document(self, document_id: str) -> int:
        """Remove the document from the queue and its chunks from the store.

        Returns the number of stored chunks deleted.

        Raises
        ------
        DocumentBusyError
            If the document is being processed right now.
        """
        item = self._find(document_id)
        if item is not None and item.status is IndexingStatus.PROCESSING:
            raise DocumentBusyError()
        if item is not None:
            self._drop(document_id)

        deleted = await self._vector_store.delete_document(document_id)
        self._logger.info("document_deleted", document_id=document_id, chunks=deleted)
        return deleted

    def set_concurrent_processing(self, limit: int) -> int:
        """Set how many documents are processed at once, clamped to [1, 10]."""
        self._concurrent_processing = max(_MIN_CONCURRENCY, min(_MAX_CONCURRENCY, int(limit)))
        return self._concurrent_processing

    def set_max_queue_size(self, size: int) -> int:
        """Set the queue capacity; values below 10 become 10."""
        self._max_queue_size = max(_MIN_QUEUE_SIZE, int(size))
        return self._max_queue_size

    async def wait_until_idle(self) -> None:
        """Wait until no drain task is running."""
        while self.is_draining:
            await asyncio.wait({self._drain_task})

    async def shutdown(self) -> None:
        """Cancel the drain task and fail whatever was mid-pipeline."""
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._drain_task = None

        for item in list(self._queue):
            if item.status is IndexingStatus.PROCESSING:
                await self._transition(
                    item.document_id,
                    IndexingStatus.FAILED,
                    error="Indexing interrupted by shutdown",
                )
        self._logger.info("indexing_coordinator_shutdown", queue_length=len(self._queue))

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    def _ensure_draining(self) -> None:
        if self.is_draining:
            return
        self._drain_task = asyncio.create_task(self._drain(), name="indexing-drain")

    async def _drain(self) -> None:
        self._logger.debug("drain_started")
        while True:
            batch = [i for i in self._queue if i.status is IndexingStatus.PENDING]
            batch = batch[: self._concurrent_processing]
            if not batch:
                break

            for item in batch:
                await self._transition(item.document_id, IndexingStatus.PROCESSING, progress=0)

            # A failing document must not take its siblings down with it.
            results = await asyncio.gather(
                *(self._process(item.document_id) for item in batch),
                return_exceptions=True,
            )
            for item, result in zip(batch, results, strict=True):
                if isinstance(result, Exception):
                    self._logger.error(
                        "pipeline_run_crashed",
                        document_id=item.document_id,
                        error=str(result),
                    )
        self._logger.debug("drain_finished")

    async def _process(self, document_id: str) -> None:
        """Run the full pipeline for one document, recording the outcome."""
        document = self._documents.get(document_id)
        bind_document_context(document_id)
        try:
            if document is None:
                raise ValidationError(message="Document content is no longer available")

            await self._transition(document_id, IndexingStatus.PROCESSING, _PROGRESS_STARTED)

            chunks = self._chunker.chunk(document, self._chunking_options)
            await self._transition(document_id, IndexingStatus.PROCESSING, _PROGRESS_CHUNKED)

            chunks = await self._enrich(chunks)
            await self._transition(document_id, IndexingStatus.PROCESSING, _PROGRESS_ENRICHED)

            vectors = await self._embedding_service.embed_batch([c.text for c in chunks])
            chunks = [
                c.model_copy(update={"embedding": v}) for c, v in zip(chunks, vectors, strict=True)
            ]
            await self._transition(document_id, IndexingStatus.PROCESSING, _PROGRESS_EMBEDDED)

            await self._commit(document_id, chunks)
            await self._transition(document_id, IndexingStatus.COMPLETED, 100)
            self._logger.info("document_indexed", title=document.title, chunks=len(chunks))
        except Exception as exc:
            self._logger.error("document_indexing_failed", error=str(exc))
            await self._transition(document_id, IndexingStatus.FAILED, error=str(exc))
        finally:
            self._documents.pop(document_id, None)
            clear_document_context()

    async def _enrich(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Analyse the first chunk and copy its metadata onto every chunk."""
        if not chunks:
            return chunks
        enrichment = await self._metadata_extractor.enrich(chunks[0].text)
        if enrichment.missing:
            self._logger.warning("enrichment_missing", missing=enrichment.missing)
        return [chunk.with_enrichment(enrichment) for chunk in chunks]

    async def _commit(self, document_id: str, chunks: list[DocumentChunk]) -> None:
        """Persist all chunks or none of them."""
        try:
            await self._vector_store.add_chunks(chunks)
        except Exception:
            try:
                await self._vector_store.delete_document(document_id)
            except Exception as cleanup_exc:
                self._logger.warning("rollback_failed", error=str(cleanup_exc))
            raise

    # ------------------------------------------------------------------
    # Queue bookkeeping
    # ------------------------------------------------------------------

    def _find(self, document_id: str) -> QueueItem | None:
        for item in self._queue:
            if item.document_id == document_id:
                return item
        return None

    def _drop(self, document_id: str) -> None:
        self._queue = [i for i in self._queue if i.document_id != document_id]
        self._documents.pop(document_id, None)
        self._progress_tracker.forget(document_id)

    async def _transition(
        self,
        document_id: str,
        status: IndexingStatus,
        progress: int | None = None,
        error: str | None = None,
    ) -> QueueItem | None:
        """Replace the item with its advanced copy, then publish it.

        The lookup and replacement happen without an intervening await.
        """
        for index, item in enumerate(self._queue):
            if item.document_id == document_id:
                updated = item.advance(status, progress=progress, error=error)
                self._queue[index] = updated
                break
        else:
            self._logger.warning("queue_item_vanished", document_id=document_id, status=status.value)
            return None

        await self._progress_tracker.publish(updated)
        return updated
