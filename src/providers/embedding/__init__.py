"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are stored in ChromaDB alongside each chunk and used for similarity
search.  OllamaEmbeddingProvider serves them from the local Ollama host.
"""

from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider"]
