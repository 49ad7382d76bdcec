"""Pydantic request/response schemas for the Dossier API.

Defines the public contract for all REST endpoints: model and health
probes, one-off analysis and embedding, search and grounded answers, chat,
document upload and management, and the indexing queue.

Convention: request schemas end with "Request", response schemas end with
"Response".  ``Field(...)`` adds constraints and descriptions for the
generated OpenAPI docs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.models.pipeline import QueueStatus
from src.models.rag import ClassificationScore, Entity, Relationship, RetrievedChunk


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class TimestampedResponse(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class HealthResponse(TimestampedResponse):
    """Application health check response."""

    status: Literal["ok", "degraded"]
    version: str
    providers: dict[str, bool]


class ModelsResponse(TimestampedResponse):
    """Default models annotated with whether the backend has them installed."""

    models: list[dict[str, Any]]
    installed: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# AI endpoints
# ---------------------------------------------------------------------------


class EmbeddingRequest(BaseModel):
    text: str = Field(min_length=1)


class EmbeddingResponse(TimestampedResponse):
    embedding: list[float]
    dimensions: int
    model: str


class AnalyzeRequest(BaseModel):
    """Free text to enrich without indexing it."""

    document: str = Field(min_length=1)


class AnalyzeResponse(TimestampedResponse):
    summary: str
    entities: list[Entity]
    relationships: list[Relationship]
    classification: list[ClassificationScore]
    category: str | None = None
    confidence: float
    missing: list[str] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    max_results: int = Field(default=5, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class SearchResponse(TimestampedResponse):
    query: str
    count: int
    results: list[RetrievedChunk]


class RAGRequest(SearchRequest):
    """Question answered from the indexed documents."""


class RAGResponse(TimestampedResponse):
    answer: str
    sources: list[RetrievedChunk]


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


class ChatResponse(TimestampedResponse):
    response: str


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentCreateRequest(BaseModel):
    """JSON alternative to the multipart upload."""

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    source: str = "api"
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentUploadResponse(TimestampedResponse):
    message: str = "Document uploaded and queued for processing"
    document_id: str
    title: str


class DocumentSummary(BaseModel):
    document_id: str
    title: str
    source: str
    created_at: datetime | None = None


class DocumentListResponse(TimestampedResponse):
    count: int
    documents: list[DocumentSummary]


class DocumentDetail(BaseModel):
    document_id: str
    title: str
    content: str = Field(description="Chunk texts joined by blank lines.")
    source: str
    created_at: datetime | None = None
    total_chunks: int
    summary: str | None = None
    entities: list[Entity] = Field(default_factory=list)
    category: str | None = None
    confidence_score: float | None = None
    tags: list[str] = Field(default_factory=list)


class DocumentDetailResponse(TimestampedResponse):
    document: DocumentDetail


class DocumentDeleteResponse(TimestampedResponse):
    message: str = "Document deleted"
    document_id: str
    deleted_chunks: int


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class QueueStatusResponse(TimestampedResponse):
    queue: QueueStatus


class QueueClearResponse(TimestampedResponse):
    message: str = "Completed and failed items cleared from queue"
    removed: int


class QueueRemoveResponse(TimestampedResponse):
    message: str = "Document removed from queue"
    document_id: str
