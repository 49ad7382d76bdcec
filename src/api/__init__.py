"""Dossier API layer — routes, schemas, WebSocket, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ErrorResponse,
    HealthResponse,
    QueueStatusResponse,
    RAGResponse,
    SearchResponse,
)
from src.api.websocket import websocket_queue_progress

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "websocket_queue_progress",
    "ErrorResponse",
    "HealthResponse",
    "QueueStatusResponse",
    "RAGResponse",
    "SearchResponse",
]
