"""Utility modules for Dossier.

- **confidence** -- label-to-score mapping and the weighted blend used for
  each chunk's enrichment confidence.
- **errors** -- domain exception hierarchy rooted at DossierError.
- **concurrency** -- semaphore-throttled gather and fixed-size batch fan-out.
- **json_extraction** -- ``Parsed | Empty`` extraction of JSON from LLM text.
- **logging** -- structlog setup with console / JSON renderers.
"""

from src.utils.concurrency import gather_in_batches, throttled_gather
from src.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    enrichment_confidence,
    label_to_score,
)
from src.utils.errors import (
    ConfigurationError,
    DocumentBusyError,
    DossierError,
    LLMError,
    PipelineError,
    ProviderUnavailableError,
    QueueFullError,
    QueueItemNotFoundError,
    RAGError,
    ValidationError,
)
from src.utils.json_extraction import Empty, Parsed, extract_json
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfidenceLevel",
    "ConfigurationError",
    "DocumentBusyError",
    "DossierError",
    "Empty",
    "LLMError",
    "Parsed",
    "PipelineError",
    "ProviderUnavailableError",
    "QueueFullError",
    "QueueItemNotFoundError",
    "RAGError",
    "ValidationError",
    "calculate_confidence",
    "configure_logging",
    "enrichment_confidence",
    "extract_json",
    "gather_in_batches",
    "get_logger",
    "label_to_score",
    "throttled_gather",
]
