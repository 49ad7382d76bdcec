"""Default model descriptors for the Ollama backend.

The ``/models`` endpoint merges these descriptors with the models actually
installed on the server (``ILLMProvider.list_models``) to show which
defaults are ready to use.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ModelKind(str, Enum):  # noqa: UP042
    CHAT = "chat"
    EMBEDDING = "embedding"


class ModelInfo(BaseModel):
    """Static description of a model Dossier knows how to use."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ModelKind
    description: str
    context_length: int = Field(ge=1)
    dimensions: int | None = None
    capabilities: list[str] = Field(default_factory=list)
    is_default: bool = False


DEFAULT_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(
        name="all-minilm:latest",
        kind=ModelKind.EMBEDDING,
        description="Sentence embedding model for semantic search.",
        context_length=512,
        dimensions=384,
        is_default=True,
    ),
    ModelInfo(
        name="nomic-embed-text:latest",
        kind=ModelKind.EMBEDDING,
        description="Long-context text embedding model.",
        context_length=8192,
        dimensions=768,
    ),
    ModelInfo(
        name="llama3.2:latest",
        kind=ModelKind.CHAT,
        description="General-purpose chat model for analysis and answers.",
        context_length=8192,
        capabilities=["summarization", "entity-extraction", "classification", "qa"],
        is_default=True,
    ),
    ModelInfo(
        name="mistral:latest",
        kind=ModelKind.CHAT,
        description="Compact instruction-following chat model.",
        context_length=8192,
        capabilities=["summarization", "qa"],
    ),
)


def get_default_model(kind: ModelKind) -> ModelInfo:
    """Return the default descriptor for *kind*."""
    for model in DEFAULT_MODELS:
        if model.kind is kind and model.is_default:
            return model
    raise LookupError(f"No default {kind.value} model registered")


def annotate_availability(installed: list[str]) -> list[dict]:
    """Return every default descriptor as a dict with an ``available`` flag."""
    installed_set = set(installed)
    return [
        {**model.model_dump(mode="json"), "available": model.name in installed_set}
        for model in DEFAULT_MODELS
    ]
