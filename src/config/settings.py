"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. **Environment variables** -- e.g. ``OLLAMA_BASE_URL=http://gpu-box:11434``
  2. **.env file** -- key=value lines in the project root (local development)

Field ``ollama_chat_model`` maps to env var ``OLLAMA_CHAT_MODEL`` and so on.
Defaults apply when neither source sets a value.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Dossier application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM host (Ollama) ===
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "llama3.2:latest"
    ollama_embedding_model: str = "all-minilm:latest"
    ollama_embedding_dimension: int = 384
    # Per-call timeout in seconds for every LLM / embedding request.
    # 0 disables the timeout (a stuck call then holds its queue slot).
    llm_request_timeout: float = Field(default=120.0, ge=0.0)

    # === Vector store (ChromaDB) ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "intelligence_documents"
    vector_store_batch_size: int = Field(default=50, ge=1)

    # === Chunking ===
    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    respect_headers: bool = True
    respect_paragraphs: bool = True

    # === Indexing queue ===
    queue_concurrent_processing: int = 1
    queue_max_size: int = 100
    embedding_batch_size: int = Field(default=10, ge=1)
    enrichment_max_concurrent: int = Field(default=4, ge=1)

    # === Retrieval ===
    search_max_results: int = Field(default=5, ge=1)
    search_score_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 3001
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def request_timeout(self) -> float | None:
        """Timeout to hand to HTTP clients, ``None`` when disabled."""
        return self.llm_request_timeout or None
