"""FastAPI API routes for Dossier.

Provides REST endpoints for health and model probes, one-off analysis and
embedding, semantic search, grounded answers, chat, document upload and
management, and the indexing queue.  Service dependencies are resolved
from ``app.state`` via FastAPI's ``Depends`` using the ``Annotated``
pattern; ``DossierError`` subclasses raised here are turned into JSON
errors by :class:`~src.api.middleware.ErrorHandlingMiddleware`.

Endpoint                               Method  Description
-------------------------------------  ------  --------------------------------
/api/v1/health                         GET     Backend availability
/api/v1/models                         GET     Default models + installed flag
/api/v1/embeddings                     POST    Embed one text
/api/v1/analyze                        POST    Enrich text without indexing it
/api/v1/search                         POST    Semantic search over chunks
/api/v1/rag                            POST    Grounded answer with sources
/api/v1/chat                           POST    Free-form chat with the LLM
/api/v1/documents/upload               POST    Upload a text file -> queue
/api/v1/documents                      POST    JSON document -> queue
/api/v1/documents                      GET     List indexed documents
/api/v1/documents/{id}                 GET     Reassembled document + metadata
/api/v1/documents/{id}                 DELETE  Delete document and its chunks
/api/v1/documents/queue/status         GET     Queue counts and items
/api/v1/documents/queue/clear          POST    Drop completed/failed items
/api/v1/documents/queue/{id}           DELETE  Remove a non-processing item
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Request, UploadFile

from src.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChatRequest,
    ChatResponse,
    DocumentCreateRequest,
    DocumentDeleteResponse,
    DocumentDetail,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentSummary,
    DocumentUploadResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    ErrorResponse,
    HealthResponse,
    ModelsResponse,
    QueueClearResponse,
    QueueRemoveResponse,
    QueueStatusResponse,
    RAGRequest,
    RAGResponse,
    SearchRequest,
    SearchResponse,
)
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.pipeline.indexing_coordinator import IndexingCoordinator
from src.providers.llm.model_registry import annotate_availability
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.metadata_extractor import MetadataExtractor
from src.services.rag_service import RetrievalService
from src.utils.errors import (
    DocumentBusyError,
    ProviderUnavailableError,
    QueueItemNotFoundError,
    ValidationError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"

_ALLOWED_CONTENT_TYPES = frozenset(
    {"text/plain", "text/markdown", "text/csv", "text/x-markdown", "application/json"}
)
_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

# Read uploads in 64 KB increments so oversized files are rejected early.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers — resolve services from app.state
# ---------------------------------------------------------------------------


def _get_llm_provider(request: Request) -> ILLMProvider:
    return request.app.state.llm_provider


def _get_embedding_service(request: Request) -> EmbeddingService:
    return request.app.state.embedding_service


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


def _get_metadata_extractor(request: Request) -> MetadataExtractor:
    return request.app.state.metadata_extractor


def _get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def _get_coordinator(request: Request) -> IndexingCoordinator:
    return request.app.state.coordinator


LLMProviderDep = Annotated[ILLMProvider, Depends(_get_llm_provider)]
EmbeddingServiceDep = Annotated[EmbeddingService, Depends(_get_embedding_service)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]
MetadataExtractorDep = Annotated[MetadataExtractor, Depends(_get_metadata_extractor)]
RetrievalServiceDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
CoordinatorDep = Annotated[IndexingCoordinator, Depends(_get_coordinator)]


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(llm: LLMProviderDep, vector_store: VectorStoreDep) -> HealthResponse:
    """Report whether the LLM backend and the vector store are usable."""
    providers = {
        "llm": await llm.validate_credentials(),
        "vector_store": vector_store.is_available(),
    }
    status = "ok" if all(providers.values()) else "degraded"
    return HealthResponse(status=status, version=_VERSION, providers=providers)


@router.get("/models", response_model=ModelsResponse, summary="List known and installed models")
async def list_models(llm: LLMProviderDep) -> ModelsResponse:
    """Return default models flagged with whether the backend has them installed.

    An unreachable backend is not an error here: every model is reported
    as unavailable.
    """
    try:
        installed = await llm.list_models()
    except ProviderUnavailableError as exc:
        _logger.warning("list_models_failed", error=str(exc))
        installed = []
    return ModelsResponse(models=annotate_availability(installed), installed=installed)


# ---------------------------------------------------------------------------
# AI endpoints
# ---------------------------------------------------------------------------


@router.post("/embeddings", response_model=EmbeddingResponse, summary="Embed a text")
async def create_embedding(
    body: EmbeddingRequest,
    embedding_service: EmbeddingServiceDep,
) -> EmbeddingResponse:
    embedding = await embedding_service.embed(body.text)
    return EmbeddingResponse(
        embedding=embedding,
        dimensions=len(embedding),
        model=embedding_service.get_model(),
    )


@router.post("/analyze", response_model=AnalyzeResponse, summary="Enrich text without indexing")
async def analyze_document(
    body: AnalyzeRequest,
    extractor: MetadataExtractorDep,
) -> AnalyzeResponse:
    """Run summary, entity, relationship and classification extraction on *document*."""
    enrichment = await extractor.enrich(body.document)
    return AnalyzeResponse(
        summary=enrichment.summary,
        entities=enrichment.entities,
        relationships=enrichment.relationships,
        classification=enrichment.classification,
        category=enrichment.category,
        confidence=enrichment.confidence_score,
        missing=enrichment.missing,
    )


@router.post("/search", response_model=SearchResponse, summary="Semantic search over chunks")
async def search(body: SearchRequest, retrieval: RetrievalServiceDep) -> SearchResponse:
    results = await retrieval.search(
        body.query, max_results=body.max_results, threshold=body.threshold
    )
    return SearchResponse(query=body.query, count=len(results), results=results)


@router.post("/rag", response_model=RAGResponse, summary="Answer a question from indexed documents")
async def rag_answer(body: RAGRequest, retrieval: RetrievalServiceDep) -> RAGResponse:
    result = await retrieval.answer(
        body.query, max_results=body.max_results, threshold=body.threshold
    )
    return RAGResponse(answer=result.answer, sources=result.sources)


@router.post("/chat", response_model=ChatResponse, summary="Chat with the LLM")
async def chat(body: ChatRequest, llm: LLMProviderDep) -> ChatResponse:
    response = await llm.chat([m.model_dump() for m in body.messages])
    return ChatResponse(response=response)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/documents/upload",
    response_model=DocumentUploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
    summary="Upload a text document and queue it for indexing",
)
async def upload_document(
    document: UploadFile,
    coordinator: CoordinatorDep,
    title: Annotated[str | None, Form()] = None,
) -> DocumentUploadResponse:
    """Accept a UTF-8 text file and queue it; indexing continues in the background."""
    content_type = (document.content_type or "").split(";")[0].strip()
    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail=(
                f"Unsupported file type: {content_type or 'unknown'}. "
                f"Allowed: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
            ),
        )

    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await document.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_FILE_SIZE // (1024 * 1024)} MB",
            )
        parts.append(part)

    try:
        content = b"".join(parts).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(message="Uploaded file is not valid UTF-8 text") from exc

    filename = document.filename or "untitled"
    doc_title = (title or "").strip() or filename
    document_id = await coordinator.enqueue(
        title=doc_title,
        content=content,
        source="upload",
        metadata={"filename": filename, "size": total_size, "mimetype": content_type},
    )
    return DocumentUploadResponse(document_id=document_id, title=doc_title)


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    summary="Queue a JSON document for indexing",
)
async def create_document(
    body: DocumentCreateRequest,
    coordinator: CoordinatorDep,
) -> DocumentUploadResponse:
    document_id = await coordinator.enqueue(
        title=body.title,
        content=body.content,
        source=body.source,
        metadata=body.metadata,
    )
    return DocumentUploadResponse(document_id=document_id, title=body.title.strip())


@router.get("/documents", response_model=DocumentListResponse, summary="List indexed documents")
async def list_documents(vector_store: VectorStoreDep) -> DocumentListResponse:
    document_ids = await vector_store.list_document_ids()
    metadata = await asyncio.gather(
        *(vector_store.get_document_metadata(doc_id) for doc_id in document_ids)
    )

    documents = [
        DocumentSummary(
            document_id=doc_id,
            title=(meta or {}).get("title") or "Unknown",
            source=(meta or {}).get("source") or "unknown",
            created_at=(meta or {}).get("created_at"),
        )
        for doc_id, meta in zip(document_ids, metadata, strict=True)
    ]
    return DocumentListResponse(count=len(documents), documents=documents)


# Queue routes have an extra path segment, so they never match /documents/{document_id}.


@router.get(
    "/documents/queue/status",
    response_model=QueueStatusResponse,
    summary="Indexing queue status",
)
async def queue_status(coordinator: CoordinatorDep) -> QueueStatusResponse:
    return QueueStatusResponse(queue=coordinator.get_queue_status())


@router.post(
    "/documents/queue/clear",
    response_model=QueueClearResponse,
    summary="Clear completed and failed queue items",
)
async def clear_queue(coordinator: CoordinatorDep) -> QueueClearResponse:
    return QueueClearResponse(removed=coordinator.clear_completed_and_failed())


@router.delete(
    "/documents/queue/{document_id}",
    response_model=QueueRemoveResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Remove a document from the queue",
)
async def remove_from_queue(document_id: str, coordinator: CoordinatorDep) -> QueueRemoveResponse:
    item = coordinator.get_item(document_id)
    if item is None:
        raise QueueItemNotFoundError()
    # Only a processing item can fail removal once it exists.
    if not coordinator.remove_from_queue(document_id):
        raise DocumentBusyError()
    return QueueRemoveResponse(document_id=document_id)


@router.get(
    "/documents/{document_id}",
    response_model=DocumentDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a document reassembled from its chunks",
)
async def get_document(document_id: str, vector_store: VectorStoreDep) -> DocumentDetailResponse:
    chunks = await vector_store.get_chunks_for_document(document_id)
    if not chunks:
        raise HTTPException(status_code=404, detail="Document not found")

    first = chunks[0]
    return DocumentDetailResponse(
        document=DocumentDetail(
            document_id=document_id,
            title=first.title,
            content="\n\n".join(c.text for c in chunks),
            source=first.source,
            created_at=first.created_at,
            total_chunks=first.total_chunks,
            summary=first.summary,
            entities=first.entities,
            category=first.category,
            confidence_score=first.confidence_score,
            tags=first.tags,
        )
    )


@router.delete(
    "/documents/{document_id}",
    response_model=DocumentDeleteResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Delete a document and its chunks",
)
async def delete_document(document_id: str, coordinator: CoordinatorDep) -> DocumentDeleteResponse:
    deleted = await coordinator.delete_document(document_id)
    return DocumentDeleteResponse(document_id=document_id, deleted_chunks=deleted)
