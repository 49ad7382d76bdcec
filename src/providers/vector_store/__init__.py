"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  It stores chunk
embeddings on disk and answers cosine-similarity queries.  Data persists
at CHROMADB_PERSIST_DIR (default: ./data/chromadb).

To swap ChromaDB for another vector database, implement
IVectorStoreProvider and wire it in main.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
