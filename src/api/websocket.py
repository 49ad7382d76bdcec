"""WebSocket endpoint for real-time indexing progress.

Connects a client to one document's queue item via the
:class:`ProgressTracker` listener mechanism.  Every change is pushed as
the queue item's JSON form (``document_id``, ``title``, ``status``,
``progress``, ``error``, ``start_time``, ``end_time``).

Lifecycle::

    accept -> register listener -> send current snapshot
           -> push every update ... -> client disconnects -> unregister
"""

from __future__ import annotations

import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.models.pipeline import QueueItem
from src.pipeline.progress_tracker import ProgressTracker
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


async def websocket_queue_progress(websocket: WebSocket, document_id: str) -> None:
    """Stream queue progress for *document_id* to the client.

    When nothing has been published for the document yet, the first
    message is ``{"document_id": ..., "status": null}``.
    """
    progress_tracker: ProgressTracker = websocket.app.state.progress_tracker

    await websocket.accept()
    _logger.info("websocket_connected", document_id=document_id)

    async def _on_progress(item: QueueItem) -> None:
        # The socket may close between the update and the send; the
        # finally block below unregisters the listener.
        with contextlib.suppress(Exception):
            await websocket.send_json(item.model_dump(mode="json"))

    progress_tracker.register_listener(document_id, _on_progress)

    try:
        snapshot = progress_tracker.get_status(document_id)
        if snapshot is None:
            await websocket.send_json({"document_id": document_id, "status": None})
        else:
            await websocket.send_json(snapshot.model_dump(mode="json"))

        # Blocks until the client disconnects.
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", document_id=document_id)

    finally:
        progress_tracker.unregister_listener(document_id, _on_progress)
        _logger.debug("websocket_listener_cleaned_up", document_id=document_id)
