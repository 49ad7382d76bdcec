"""Dossier FastAPI application entry point.

Wires together the providers, services, and the indexing coordinator via
dependency injection on ``app.state``.  Loads configuration from ``.env``
and ``config/config.yaml`` and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_queue_progress
from src.config.loader import load_config
from src.config.settings import Settings
from src.models.rag import ChunkingOptions
from src.pipeline.indexing_coordinator import IndexingCoordinator
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.metadata_extractor import MetadataExtractor
from src.services.rag_service import RetrievalService
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=config["logging"]["level"],
    json_output=(config["app"]["env"] == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _provider_settings(app_settings: Settings, llm: dict[str, Any]) -> Settings:
    """Return *app_settings* with the Ollama fields taken from the merged ``llm`` section."""
    return app_settings.model_copy(
        update={
            "ollama_base_url": llm["base_url"],
            "ollama_chat_model": llm["chat_model"],
            "ollama_embedding_model": llm["embedding_model"],
            "ollama_embedding_dimension": int(llm["embedding_dimension"]),
            "llm_request_timeout": float(llm["request_timeout"]),
        }
    )


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Everything is read from the merged *app_config* (Settings defaults,
    then YAML, then explicitly set environment variables).  Returns a flat
    dict of named components to be stored on ``app.state``.
    """
    chunking = app_config["chunking"]
    queue = app_config["queue"]
    retrieval = app_config["retrieval"]
    store = app_config["vector_store"]

    # -- Providers --
    ollama_settings = _provider_settings(app_settings, app_config["llm"])
    llm_provider = OllamaLLMProvider(settings=ollama_settings)
    embedding_provider = OllamaEmbeddingProvider(settings=ollama_settings)
    embedding_service = EmbeddingService(
        embedding_provider, batch_size=queue["embedding_batch_size"]
    )
    vector_store = ChromaDBProvider(
        embedding_provider=embedding_provider,
        persist_directory=store["persist_dir"],
        collection_name=store["collection"],
        batch_size=store["batch_size"],
    )

    # -- Services --
    chunking_options = ChunkingOptions(
        chunk_size=chunking["chunk_size"],
        chunk_overlap=chunking["chunk_overlap"],
        respect_headers=chunking["respect_headers"],
        respect_paragraphs=chunking["respect_paragraphs"],
    )
    chunker = TextChunker(chunking_options)
    metadata_extractor = MetadataExtractor(
        llm_provider, max_concurrent=queue["enrichment_max_concurrent"]
    )
    retrieval_service = RetrievalService(
        llm_provider,
        vector_store,
        default_max_results=retrieval["max_results"],
        default_threshold=retrieval["score_threshold"],
    )

    # -- Indexing queue --
    progress_tracker = ProgressTracker()
    coordinator = IndexingCoordinator(
        chunker=chunker,
        metadata_extractor=metadata_extractor,
        embedding_service=embedding_service,
        vector_store=vector_store,
        progress_tracker=progress_tracker,
        chunking_options=chunking_options,
        concurrent_processing=queue["concurrent_processing"],
        max_queue_size=queue["max_size"],
    )

    return {
        "llm_provider": llm_provider,
        "embedding_service": embedding_service,
        "vector_store": vector_store,
        "metadata_extractor": metadata_extractor,
        "retrieval_service": retrieval_service,
        "progress_tracker": progress_tracker,
        "coordinator": coordinator,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    vector_store: ChromaDBProvider = components["vector_store"]
    try:
        await vector_store.initialize()
    except Exception as exc:
        # The app still serves chat and health; indexing fails per item.
        _logger.warning("vector_store_init_failed", error=str(exc))

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=config["app"]["env"],
        chat_model=config["llm"]["chat_model"],
        embedding_model=config["llm"]["embedding_model"],
        vector_store=vector_store.get_provider_name(),
    )

    yield

    coordinator: IndexingCoordinator = components["coordinator"]
    await coordinator.shutdown()
    _logger.info("app_shutdown", message="Indexing coordinator stopped")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Dossier API",
        version=_VERSION,
        description=(
            "Upload text documents, enrich them with LLM-extracted summaries, "
            "entities and classifications, index them in a vector store, and "
            "answer questions grounded in the indexed material."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config["app"].get("cors_origins"))

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/queue/{document_id}")
    async def ws_queue_progress(websocket: WebSocket, document_id: str) -> None:
        await websocket_queue_progress(websocket, document_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=config["app"]["host"],
        port=int(config["app"]["port"]),
        reload=(config["app"]["env"] == "development"),
    )
