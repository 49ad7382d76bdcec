"""Dossier domain models — re-exports all public model classes.

The models are organized across two submodules by domain concern:
    - rag.py        — documents, chunks, chunk enrichment and retrieval results
    - pipeline.py   — indexing queue items and the queue state machine

The ``__all__`` list at the bottom controls what ``from src.models import *``
exports. If you add a new model class, remember to add it here too.
"""

from __future__ import annotations

from src.models.pipeline import (
    IndexingStatus,
    QueueItem,
    QueueStatus,
)
from src.models.rag import (
    ChunkEnrichment,
    ChunkingOptions,
    ClassificationScore,
    Document,
    DocumentChunk,
    Entity,
    EntityType,
    RAGAnswer,
    Relationship,
    RetrievedChunk,
)

__all__ = [
    "ChunkEnrichment",
    "ChunkingOptions",
    "ClassificationScore",
    "Document",
    "DocumentChunk",
    "Entity",
    "EntityType",
    "IndexingStatus",
    "QueueItem",
    "QueueStatus",
    "RAGAnswer",
    "Relationship",
    "RetrievedChunk",
]
