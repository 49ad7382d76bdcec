"""Document, chunk and enrichment models for the Dossier index.

Defines Pydantic v2 models for source documents, their chunks, the
AI-derived enrichment attached to chunks, and retrieval results.  All
models are frozen; pipeline stages produce updated copies with
``model_copy(update={...})`` instead of mutating in place.

Lifecycle overview:

    1. An upload becomes a :class:`Document` (the coordinator assigns the id).
    2. The chunker splits it into :class:`DocumentChunk` objects.
    3. The metadata extractor produces a :class:`ChunkEnrichment` which is
       copied onto every chunk of the document.
    4. Embeddings are attached and the chunks are persisted to ChromaDB.
    5. Searches return :class:`RetrievedChunk` objects.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Document — the unit handed to the indexing coordinator.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """A free-text source document.

    Immutable once handed to the coordinator; the id is opaque and globally
    unique (uuid4).
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Opaque unique identifier (uuid4).")
    title: str = Field(description="Human-readable document title.")
    content: str = Field(description="Full text content.")
    source: str = Field(default="upload", description='Origin tag, e.g. "upload".')
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form caller metadata (filename, size, mimetype...).",
    )


# ---------------------------------------------------------------------------
# Enrichment building blocks
# ---------------------------------------------------------------------------
class EntityType(str, Enum):  # noqa: UP042
    """Entity categories the extraction prompt asks for."""

    PERSON = "person"
    ORGANIZATION = "organization"
    EQUIPMENT = "equipment"
    LOCATION = "location"
    EVENT = "event"
    DATE = "date"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> EntityType:
        """Map free-form LLM labels ("People", "Org", "LOCATION") to a member."""
        label = str(value or "").strip().lower()
        aliases = {
            "people": cls.PERSON,
            "org": cls.ORGANIZATION,
            "organisation": cls.ORGANIZATION,
            "organizations": cls.ORGANIZATION,
            "locations": cls.LOCATION,
            "place": cls.LOCATION,
            "events": cls.EVENT,
            "time": cls.DATE,
            "dates and times": cls.DATE,
        }
        if label in aliases:
            return aliases[label]
        try:
            return cls(label)
        except ValueError:
            return cls.OTHER


class Entity(BaseModel):
    """A named entity mentioned in a chunk."""

    model_config = ConfigDict(frozen=True)

    name: str
    entity_type: EntityType = EntityType.OTHER
    mentions: int = Field(default=1, ge=1)
    confidence_score: float = Field(default=0.8, ge=0.0, le=1.0)


class Relationship(BaseModel):
    """A directed relationship between two entities."""

    model_config = ConfigDict(frozen=True)

    source: str
    relation: str
    target: str
    description: str = ""
    confidence: str = "low"


class ClassificationScore(BaseModel):
    """Confidence (0--100) that a chunk belongs to an intelligence category."""

    model_config = ConfigDict(frozen=True)

    category: str
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    justification: str = ""


class ChunkEnrichment(BaseModel):
    """Output of :meth:`MetadataExtractor.enrich` for one chunk of text."""

    model_config = ConfigDict(frozen=True)

    summary: str = ""
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    classification: list[ClassificationScore] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    missing: list[str] = Field(
        default_factory=list,
        description="Sub-extractions whose backend call failed.",
    )

    @property
    def category(self) -> str | None:
        """Highest-scoring classification category, if any."""
        if not self.classification:
            return None
        return max(self.classification, key=lambda c: c.confidence).category

    @property
    def tags(self) -> list[str]:
        """Classification categories ordered by descending confidence."""
        ranked = sorted(self.classification, key=lambda c: c.confidence, reverse=True)
        return [c.category for c in ranked]


# ---------------------------------------------------------------------------
# DocumentChunk — the fundamental unit of the index.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded contiguous span of a document, stored and embedded independently.

    ``chunk_id`` is derived from ``document_id`` and ``chunk_index`` so
    re-chunking the same document is idempotent at the identifier level.
    Enrichment fields and ``embedding`` are filled in as pipeline stages
    complete.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic id: chunk- + md5(document_id-index).")
    document_id: str = Field(description="Identifier of the owning document.")
    text: str = Field(description="The chunk's textual content.")
    chunk_index: int = Field(ge=0, description="Zero-based position within the document.")
    total_chunks: int = Field(ge=1, description="Number of chunks in the document.")
    title: str = Field(default="", description="Owning document title.")
    source: str = Field(default="upload")
    created_at: datetime = Field(default_factory=_utcnow)
    # --- Enrichment, propagated from the document's analysed chunk. ---
    summary: str | None = None
    entities: list[Entity] = Field(default_factory=list)
    category: str | None = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    embedding: list[float] | None = Field(default=None, repr=False)

    def with_enrichment(self, enrichment: ChunkEnrichment) -> DocumentChunk:
        """Return a copy carrying *enrichment*'s summary, entities and scores."""
        return self.model_copy(
            update={
                "summary": enrichment.summary or None,
                "entities": list(enrichment.entities),
                "category": enrichment.category,
                "confidence_score": enrichment.confidence_score,
                "tags": enrichment.tags,
            }
        )


# ---------------------------------------------------------------------------
# RetrievedChunk — a search result from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A stored chunk returned by a similarity search, with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity_score: float = Field(default=0.0, ge=0.0, le=1.0)


class RAGAnswer(BaseModel):
    """A grounded answer plus the chunks it was generated from."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[RetrievedChunk] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# ChunkingOptions — validated chunker configuration.
# ---------------------------------------------------------------------------
class ChunkingOptions(BaseModel):
    """Options controlling :class:`~src.services.ingestion.chunker.TextChunker`.

    ``chunk_overlap >= chunk_size`` is accepted here and clamped to zero by
    the chunker so a configuration mistake never fails a document.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, ge=1, description="Max characters per chunk.")
    chunk_overlap: int = Field(
        default=200,
        ge=0,
        description="Characters carried into the next chunk on character splits.",
    )
    respect_headers: bool = True
    respect_paragraphs: bool = True

    @property
    def effective_overlap(self) -> int:
        """Overlap actually applied: zero when it would not leave forward progress."""
        return self.chunk_overlap if self.chunk_overlap < self.chunk_size else 0
