"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement
:class:`IVectorStoreProvider`.  Uses cosine distance, so the similarity
reported to callers is ``1 - distance``.  Fully local, no external service
required.

ChromaDB metadata values must be ``str``, ``int``, ``float`` or ``bool``;
richer chunk fields (entity lists, tags) are JSON-encoded on the way in
and decoded on the way out so nothing upstream sees the storage format.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime
from typing import Any

# Telemetry must be disabled before chromadb is imported.  The env var,
# posthog.disabled and the client Settings below each cover different
# chromadb releases.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocumentChunk, Entity, RetrievedChunk
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

_COLLECTION_DESCRIPTION = "Intelligence document chunks and embeddings"
_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that prevents ChromaDB from loading its own model.

    Every vector is computed by the injected :class:`IEmbeddingProvider`
    and passed explicitly, so ChromaDB's default ONNX model is never needed.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Dossier uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    The collection is opened lazily by :meth:`initialize`, which is guarded
    by an :class:`asyncio.Lock` so concurrent pipeline runs attach to one
    collection instead of racing to create it.

    Parameters
    ----------
    embedding_provider:
        Used to embed query text and any chunk stored without a vector.
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Name of the collection holding every chunk.
    batch_size:
        Maximum number of records per upsert request (default 50).
    client:
        Optional pre-built ChromaDB client (tests pass an ephemeral one).
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "intelligence_documents",
        batch_size: int = 50,
        client: Any | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._batch_size = max(1, batch_size)
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection: Any | None = None
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create or attach to the collection exactly once."""
        if self._collection is not None:
            return
        async with self._init_lock:
            # Another caller may have finished while we waited on the lock.
            if self._collection is not None:
                return
            try:
                self._collection = self._open_collection()
            except Exception as exc:
                raise RAGError(
                    message=f"ChromaDB initialize failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            logger.info(
                "chromadb_initialized",
                collection=self._collection_name,
                count=self._collection.count(),
            )

    async def reset(self) -> None:
        """Delete the collection and create an empty one in its place."""
        async with self._init_lock:
            try:
                self._client.delete_collection(name=self._collection_name)
            except Exception as exc:  # noqa: BLE001 -- absent collection is fine
                logger.warning(
                    "chromadb_delete_collection_skipped",
                    collection=self._collection_name,
                    error=str(exc),
                )
            self._collection = None
            try:
                self._collection = self._open_collection()
            except Exception as exc:
                raise RAGError(
                    message=f"ChromaDB reset failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
        logger.info("chromadb_reset", collection=self._collection_name)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> int:
        """Upsert chunks in batches of ``batch_size``.

        Vectors come from *embeddings* when given, otherwise from each
        chunk's ``embedding``; chunks with neither are embedded first.
        """
        if embeddings is not None and len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        vectors = embeddings if embeddings is not None else await self._vectors_for(chunks)
        collection = await self._ready_collection()

        try:
            total_stored = 0
            for start in range(0, len(chunks), self._batch_size):
                batch = chunks[start : start + self._batch_size]
                collection.upsert(
                    ids=[c.chunk_id for c in batch],
                    embeddings=vectors[start : start + self._batch_size],
                    documents=[c.text for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
                total_stored += len(batch)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB add_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_add_chunks",
            count=total_stored,
            batches=(len(chunks) + self._batch_size - 1) // self._batch_size,
        )
        return total_stored

    async def search(
        self,
        query_text: str,
        k: int = 5,
        score_threshold: float = 0.7,
    ) -> list[RetrievedChunk]:
        """Semantic search returning chunks with ``1 - distance >= score_threshold``."""
        collection = await self._ready_collection()
        query_embedding = await self._embedding_provider.embed_single(query_text)

        try:
            count = collection.count()
            if count == 0 or k <= 0:
                return []
            results = collection.query(
                query_embeddings=[query_embedding],
                n_results=min(k, count),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < score_threshold:
                continue
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, text, meta or {}),
                    similarity_score=similarity,
                )
            )
        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)

        logger.info(
            "chromadb_search",
            query_length=len(query_text),
            raw_results=len(ids),
            results_count=len(retrieved),
            threshold=score_threshold,
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def get_chunks_for_document(self, document_id: str) -> list[DocumentChunk]:
        """Return every chunk of *document_id* ordered by ``chunk_index``."""
        collection = await self._ready_collection()
        try:
            page = collection.get(
                where={"document_id": document_id},
                include=["documents", "metadatas"],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB get_chunks_for_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        chunks = [
            self._metadata_to_chunk(chunk_id, text, meta or {})
            for chunk_id, text, meta in zip(
                page["ids"] or [], page["documents"] or [], page["metadatas"] or [], strict=True
            )
        ]
        chunks.sort(key=lambda c: c.chunk_index)
        return chunks

    async def delete_document(self, document_id: str) -> int:
        """Delete all chunks of *document_id*; deleting nothing is not an error."""
        collection = await self._ready_collection()
        try:
            existing = collection.get(where={"document_id": document_id}, include=[])
            ids = existing["ids"] or []
            if ids:
                collection.delete(ids=ids)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_document", document_id=document_id, deleted_count=len(ids))
        return len(ids)

    async def list_document_ids(self) -> list[str]:
        """Return distinct document ids, paginating to stay under SQLite's bind limit."""
        collection = await self._ready_collection()
        try:
            seen: set[str] = set()
            offset = 0
            while True:
                page = collection.get(include=["metadatas"], limit=_PAGE_SIZE, offset=offset)
                metadatas = page["metadatas"] or []
                for meta in metadatas:
                    doc_id = (meta or {}).get("document_id")
                    if doc_id:
                        seen.add(doc_id)
                if len(metadatas) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB list_document_ids failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return sorted(seen)

    async def get_document_metadata(self, document_id: str) -> dict[str, Any] | None:
        """Return the decoded metadata of the document's first chunk."""
        chunks = await self.get_chunks_for_document(document_id)
        if not chunks:
            return None
        first = chunks[0]
        return first.model_dump(mode="json", exclude={"text", "embedding", "chunk_id", "chunk_index"})

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        if self._collection is None:
            return False
        try:
            self._collection.count()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _open_collection(self) -> Any:
        metadata = {"hnsw:space": "cosine", "description": _COLLECTION_DESCRIPTION}
        # Collections created by other tooling may persist a different
        # embedding function, which newer ChromaDB rejects with ValueError.
        try:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata=metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata=metadata,
            )

    async def _ready_collection(self) -> Any:
        await self.initialize()
        return self._collection

    async def _vectors_for(self, chunks: list[DocumentChunk]) -> list[list[float]]:
        missing = [i for i, c in enumerate(chunks) if c.embedding is None]
        computed: dict[int, list[float]] = {}
        if missing:
            vectors = await self._embedding_provider.embed([chunks[i].text for i in missing])
            computed = dict(zip(missing, vectors, strict=True))
        return [c.embedding if c.embedding is not None else computed[i] for i, c in enumerate(chunks)]

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
        """Flatten a chunk into ChromaDB-compatible metadata."""
        meta: dict[str, str | int | float | bool] = {
            "document_id": chunk.document_id,
            "title": chunk.title,
            "source": chunk.source,
            "created_at": chunk.created_at.isoformat(),
            "chunk_index": chunk.chunk_index,
            "total_chunks": chunk.total_chunks,
        }
        if chunk.summary is not None:
            meta["summary"] = chunk.summary
        if chunk.category is not None:
            meta["category"] = chunk.category
        if chunk.confidence_score is not None:
            meta["confidence_score"] = chunk.confidence_score
        if chunk.tags:
            meta["tags"] = json.dumps(chunk.tags)
        if chunk.entities:
            meta["entities"] = json.dumps([e.model_dump(mode="json") for e in chunk.entities])
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, text: str, meta: dict[str, Any]) -> DocumentChunk:
        """Reverse :meth:`_chunk_to_metadata`."""
        created_raw = meta.get("created_at")
        extra: dict[str, Any] = {}
        if created_raw:
            extra["created_at"] = datetime.fromisoformat(created_raw)

        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=meta.get("document_id", ""),
            text=text or "",
            chunk_index=int(meta.get("chunk_index", 0)),
            total_chunks=max(1, int(meta.get("total_chunks", 1))),
            title=meta.get("title", ""),
            source=meta.get("source", "upload"),
            summary=meta.get("summary"),
            category=meta.get("category"),
            confidence_score=meta.get("confidence_score"),
            tags=ChromaDBProvider._decode_list(meta.get("tags")),
            entities=[
                Entity.model_validate(e)
                for e in ChromaDBProvider._decode_list(meta.get("entities"))
                if isinstance(e, dict)
            ],
            **extra,
        )

    @staticmethod
    def _decode_list(value: Any) -> list:
        """Decode a JSON-encoded list; anything else becomes an empty list."""
        if not value or not isinstance(value, str):
            return []
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return []
        return decoded if isinstance(decoded, list) else []
