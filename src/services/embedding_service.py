"""Embedding generation with bounded fan-out.

Wraps an :class:`~src.interfaces.embedding_provider.IEmbeddingProvider`
so callers can embed one text or many.  Batches are sent one text per
request, ``batch_size`` requests at a time, which keeps a local Ollama
server from being flooded when a long document is indexed.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

import structlog

from src.utils.concurrency import gather_in_batches

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingService:
    """Generates embedding vectors through the configured provider.

    Parameters
    ----------
    provider:
        The embedding backend.
    batch_size:
        Maximum number of concurrent embedding requests in
        :meth:`embed_batch` (default 10).
    """

    def __init__(self, provider: IEmbeddingProvider, batch_size: int = 10) -> None:
        self._provider = provider
        self._batch_size = max(1, batch_size)

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*."""
        return await self._provider.embed_single(text)

    async def embed_batch(
        self,
        texts: Sequence[str],
        batch_size: int | None = None,
    ) -> list[list[float]]:
        """Embed every text, preserving input order.

        Any failing request fails the whole call; the error raised by the
        provider propagates unchanged.
        """
        if not texts:
            return []
        vectors = await gather_in_batches(texts, self.embed, batch_size or self._batch_size)
        logger.info(
            "embed_batch_complete",
            count=len(vectors),
            model=self._provider.get_model(),
        )
        return vectors

    def get_dimension(self) -> int:
        return self._provider.get_dimension()

    def get_model(self) -> str:
        return self._provider.get_model()

    def set_model(self, model: str) -> None:
        self._provider.set_model(model)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b* in [-1, 1].

    Raises
    ------
    ValueError
        If the vectors have different dimensions.
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same dimensions: {len(a)} != {len(b)}")

    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    dot = math.fsum(x * y for x, y in zip(a, b))
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))
