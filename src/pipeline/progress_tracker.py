"""Indexing progress tracking with callback-based listener notification.

Keeps the latest :class:`~src.models.pipeline.QueueItem` snapshot for each
document and broadcasts every change to the listeners registered for that
document.  Listeners are keyed by document id, so a WebSocket watching one
upload never sees another upload's progress.

The coordinator publishes; the WebSocket handler listens::

    IndexingCoordinator --publish()--> ProgressTracker --callback()--> WebSocket handler
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from src.models.pipeline import QueueItem
from src.utils.logging import get_logger


class ProgressTracker:
    """Tracks and broadcasts indexing progress via callbacks.

    Callbacks may be sync or async and receive the new
    :class:`QueueItem` snapshot.  A callback that raises is logged and
    skipped; it never interrupts the pipeline or other listeners.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, QueueItem] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, item: QueueItem) -> None:
        """Record *item* as the latest snapshot and notify its listeners."""
        self._snapshots[item.document_id] = item

        self._logger.debug(
            "progress_update",
            document_id=item.document_id,
            status=item.status.value,
            progress=item.progress,
        )

        await self._notify_listeners(item)

    def register_listener(self, document_id: str, callback: Callable) -> None:
        """Register *callback* for updates about *document_id*.

        Registering the same callback twice has no effect.
        """
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, document_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)
            if not listeners:
                del self._listeners[document_id]
            self._logger.debug(
                "listener_unregistered",
                document_id=document_id,
                remaining_listeners=len(listeners),
            )

    def get_status(self, document_id: str) -> QueueItem | None:
        """Return the latest snapshot for *document_id*, if any was published."""
        return self._snapshots.get(document_id)

    def forget(self, document_id: str) -> None:
        """Drop the stored snapshot for a document removed from the queue."""
        self._snapshots.pop(document_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, item: QueueItem) -> None:
        # Copy: a callback may unregister itself while we iterate.
        for callback in list(self._listeners.get(item.document_id, [])):
            try:
                result = callback(item)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=item.document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
