"""Custom exception hierarchy for Dossier.

All application exceptions inherit from :class:`DossierError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "ollama", "chromadb") caused the failure.

The hierarchy is organized by pipeline domain:

    DossierError  (base -- catch-all for any Dossier error)
    +-- ValidationError          (bad input, rejected before any I/O)
    +-- ConfigurationError       (startup / missing config)
    +-- ProviderUnavailableError (LLM host or vector store unreachable)
    +-- LLMError                 (any LLM API call failure)
    +-- RAGError                 (embedding or vector-store failure)
    +-- PipelineError            (indexing pipeline / state transitions)
        +-- QueueFullError           (enqueue rejected at capacity)
        +-- QueueItemNotFoundError   (unknown or non-removable queue item)
        +-- DocumentBusyError        (delete requested mid-indexing)
"""


class DossierError(Exception):
    """Base exception for all Dossier errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[ollama] Connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input / configuration errors
# ---------------------------------------------------------------------------

class ValidationError(DossierError):
    """Raised when caller input is invalid (missing fields, empty content)."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DossierError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(DossierError):
    """Raised when an external service is unreachable.

    The health-check path reports this as a status rather than failing.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DossierError):
    """Raised when an LLM API call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(DossierError):
    """Raised when an embedding or vector-store operation fails."""

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Indexing pipeline errors
# ---------------------------------------------------------------------------

class PipelineError(DossierError):
    """Raised when indexing orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Indexing pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class QueueFullError(PipelineError):
    """Raised when a document is enqueued while the queue is at capacity."""

    def __init__(
        self,
        message: str = "Indexing queue is full. Please try again later.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class QueueItemNotFoundError(PipelineError):
    """Raised when a queue item does not exist or cannot be removed."""

    def __init__(
        self,
        message: str = "Document not found in queue or is currently processing",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentBusyError(PipelineError):
    """Raised when deleting a document that is still being indexed."""

    def __init__(
        self,
        message: str = "Document is currently being indexed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
