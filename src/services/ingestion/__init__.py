"""Document ingestion stages for the Dossier index.

1. **Chunk** (chunker.py / TextChunker) -- splits a document at headers,
   paragraphs or, as a last resort, fixed character windows with overlap.

2. **Enrich** (metadata_extractor.py / MetadataExtractor) -- derives a
   summary, entities, relationships and an intelligence classification
   from a chunk with the LLM.

Embedding and persistence live in
:class:`~src.services.embedding_service.EmbeddingService` and the vector
store provider; :class:`~src.pipeline.indexing_coordinator.IndexingCoordinator`
runs the stages in order for each queued document.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.metadata_extractor import MetadataExtractor

__all__ = [
    "MetadataExtractor",
    "TextChunker",
]
