"""Indexing queue state models.

Defines the queue-item state machine driven by
:class:`~src.pipeline.indexing_coordinator.IndexingCoordinator`.  Queue
items are frozen; every transition produces a new instance via
:meth:`QueueItem.advance`, which refuses to move backwards.

State machine::

    pending ──→ processing ──→ completed
                          └──→ failed
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.utils.errors import PipelineError


# ---------------------------------------------------------------------------
# IndexingStatus — queue item lifecycle.
# ---------------------------------------------------------------------------
class IndexingStatus(str, Enum):  # noqa: UP042
    """Lifecycle of one document in the indexing queue."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (IndexingStatus.COMPLETED, IndexingStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[IndexingStatus, frozenset[IndexingStatus]] = {
    IndexingStatus.PENDING: frozenset({IndexingStatus.PROCESSING}),
    IndexingStatus.PROCESSING: frozenset(
        {IndexingStatus.PROCESSING, IndexingStatus.COMPLETED, IndexingStatus.FAILED}
    ),
    IndexingStatus.COMPLETED: frozenset(),
    IndexingStatus.FAILED: frozenset(),
}


# ---------------------------------------------------------------------------
# QueueItem — the coordinator's tracking record for one document.
# ---------------------------------------------------------------------------
class QueueItem(BaseModel):
    """Progress record for one enqueued document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str = Field(description="Denormalised document title for display.")
    status: IndexingStatus = IndexingStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    def advance(
        self,
        status: IndexingStatus,
        progress: int | None = None,
        error: str | None = None,
    ) -> QueueItem:
        """Return a copy moved to *status*.

        Staying in ``processing`` is allowed (progress updates).  Entering
        ``processing`` stamps ``start_time``; entering a terminal state
        stamps ``end_time``.  Progress never decreases.

        Raises
        ------
        PipelineError
            If the transition is not allowed by the state machine.
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise PipelineError(
                message=(
                    f"Illegal queue transition for {self.document_id}: "
                    f"{self.status.value} -> {status.value}"
                )
            )

        now = datetime.now(tz=timezone.utc)
        update: dict[str, object] = {"status": status}
        if progress is not None:
            bounded = max(0, min(100, progress))
            # Entering processing resets progress to 0 from pending.
            if status is IndexingStatus.PROCESSING and self.status is IndexingStatus.PENDING:
                update["progress"] = bounded
            else:
                update["progress"] = max(self.progress, bounded)
        if status is IndexingStatus.PROCESSING and self.status is IndexingStatus.PENDING:
            update["start_time"] = now
        if status.is_terminal:
            update["end_time"] = now
            if error is not None:
                update["error"] = error
        return self.model_copy(update=update)


class QueueStatus(BaseModel):
    """Aggregate counts per status plus a snapshot of every queue item."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    items: list[QueueItem] = Field(default_factory=list)

    @classmethod
    def from_items(cls, items: list[QueueItem]) -> QueueStatus:
        counts = {status: 0 for status in IndexingStatus}
        for item in items:
            counts[item.status] += 1
        return cls(
            total=len(items),
            pending=counts[IndexingStatus.PENDING],
            processing=counts[IndexingStatus.PROCESSING],
            completed=counts[IndexingStatus.COMPLETED],
            failed=counts[IndexingStatus.FAILED],
            items=list(items),
        )
