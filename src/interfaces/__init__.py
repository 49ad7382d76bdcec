"""Public interface definitions for Dossier's external collaborators.

Business logic talks to the LLM host, the embedding backend and the vector
database only through these abstract base classes.  Concrete adapters live
in ``src/providers/`` and are wired together in ``src/main.py``; tests
inject in-memory fakes instead.

    Interface              →  Concrete implementation (src/providers/)
    ─────────────────────────────────────────────────────────────
    ILLMProvider           →  OllamaLLMProvider
    IEmbeddingProvider     →  OllamaEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
