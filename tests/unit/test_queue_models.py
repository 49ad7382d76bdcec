"""Unit tests for the queue item state machine and queue status aggregation."""

from __future__ import annotations

import pytest

from src.models.pipeline import IndexingStatus, QueueItem, QueueStatus
from src.utils.errors import PipelineError


def _pending(document_id: str = "doc-1") -> QueueItem:
    return QueueItem(document_id=document_id, title="Report")


class TestAdvance:
    def test_new_item_is_pending(self) -> None:
        item = _pending()

        assert item.status is IndexingStatus.PENDING
        assert item.progress == 0
        assert item.start_time is None
        assert item.end_time is None

    def test_entering_processing_stamps_start_time(self) -> None:
        item = _pending().advance(IndexingStatus.PROCESSING, progress=0)

        assert item.status is IndexingStatus.PROCESSING
        assert item.start_time is not None
        assert item.end_time is None

    def test_progress_never_decreases(self) -> None:
        item = _pending().advance(IndexingStatus.PROCESSING, progress=50)
        item = item.advance(IndexingStatus.PROCESSING, progress=30)

        assert item.progress == 50

    def test_progress_is_bounded(self) -> None:
        item = _pending().advance(IndexingStatus.PROCESSING, progress=250)
        assert item.progress == 100

    def test_completion_stamps_end_time(self) -> None:
        item = _pending().advance(IndexingStatus.PROCESSING, progress=0)
        done = item.advance(IndexingStatus.COMPLETED, progress=100)

        assert done.status.is_terminal
        assert done.end_time is not None
        assert done.end_time >= done.start_time
        assert done.error is None

    def test_failure_records_error(self) -> None:
        item = _pending().advance(IndexingStatus.PROCESSING, progress=30)
        failed = item.advance(IndexingStatus.FAILED, error="embedding backend down")

        assert failed.status is IndexingStatus.FAILED
        assert failed.error == "embedding backend down"
        assert failed.progress == 30

    @pytest.mark.parametrize(
        ("path", "target"),
        [
            ([], IndexingStatus.COMPLETED),
            ([], IndexingStatus.FAILED),
            ([IndexingStatus.PROCESSING], IndexingStatus.PENDING),
            ([IndexingStatus.PROCESSING, IndexingStatus.COMPLETED], IndexingStatus.PROCESSING),
            ([IndexingStatus.PROCESSING, IndexingStatus.FAILED], IndexingStatus.COMPLETED),
        ],
    )
    def test_illegal_transitions(self, path: list[IndexingStatus], target: IndexingStatus) -> None:
        item = _pending()
        for status in path:
            item = item.advance(status)

        with pytest.raises(PipelineError, match="Illegal queue transition"):
            item.advance(target)

    def test_advance_returns_new_instance(self) -> None:
        item = _pending()
        moved = item.advance(IndexingStatus.PROCESSING)

        assert item.status is IndexingStatus.PENDING
        assert moved is not item


class TestQueueStatus:
    def test_counts_per_status(self) -> None:
        processing = _pending("b").advance(IndexingStatus.PROCESSING)
        items = [
            _pending("a"),
            processing,
            processing.model_copy(update={"document_id": "c"}).advance(IndexingStatus.COMPLETED),
            processing.model_copy(update={"document_id": "d"}).advance(IndexingStatus.FAILED),
            _pending("e"),
        ]

        status = QueueStatus.from_items(items)

        assert status.total == 5
        assert status.pending == 2
        assert status.processing == 1
        assert status.completed == 1
        assert status.failed == 1
        assert [i.document_id for i in status.items] == ["a", "b", "c", "d", "e"]

    def test_empty_queue(self) -> None:
        status = QueueStatus.from_items([])
        assert status.total == 0
        assert status.items == []
