"""Retrieve-then-generate question answering over the indexed documents.

A single pass: the question is embedded and matched against the vector
store, the matching chunks are rendered into a context block, and the LLM
is asked to answer from that context alone.  When nothing clears the
similarity threshold the service declines without calling the LLM, so
an empty index can never produce a fabricated answer.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocumentChunk, RAGAnswer, RetrievedChunk
from src.services.prompts import (
    ANALYST_SYSTEM_PROMPT,
    INSUFFICIENT_CONTEXT_ANSWER,
    RAG_QUERY_PROMPT,
    fill_prompt_template,
)
from src.utils.errors import ValidationError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

_SYSTEM_PROMPT = (
    f"{ANALYST_SYSTEM_PROMPT} Answer strictly from the CONTEXT INFORMATION you are given. "
    "Never add facts that are not in it. If the context does not contain the answer, "
    f'reply exactly: "{INSUFFICIENT_CONTEXT_ANSWER}"'
)


class RetrievalService:
    """Answers questions using chunks retrieved from the vector store.

    Parameters
    ----------
    llm:
        Chat model used to generate the answer.
    vector_store:
        Store searched for supporting chunks (it embeds the query itself).
    default_max_results:
        Number of chunks retrieved when the caller does not say.
    default_threshold:
        Minimum similarity (``1 - cosine distance``) for a chunk to count.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        vector_store: IVectorStoreProvider,
        default_max_results: int = 5,
        default_threshold: float = 0.7,
    ) -> None:
        self._llm = llm
        self._vector_store = vector_store
        self._default_max_results = default_max_results
        self._default_threshold = default_threshold

    async def search(
        self,
        query: str,
        max_results: int | None = None,
        threshold: float | None = None,
    ) -> list[RetrievedChunk]:
        """Return chunks similar to *query*, best first."""
        if not query or not query.strip():
            raise ValidationError(message="Query must not be empty")
        return await self._vector_store.search(
            query,
            k=self._default_max_results if max_results is None else max_results,
            score_threshold=self._default_threshold if threshold is None else threshold,
        )

    async def answer(
        self,
        query: str,
        max_results: int | None = None,
        threshold: float | None = None,
    ) -> RAGAnswer:
        """Answer *query* from retrieved context, citing the chunks used.

        Returns
        -------
        RAGAnswer
            The model's answer and the source chunks with their scores.
            With no sources the answer is the fixed decline sentence.
        """
        sources = await self.search(query, max_results=max_results, threshold=threshold)
        if not sources:
            logger.info("rag_no_context", query_length=len(query))
            return RAGAnswer(answer=INSUFFICIENT_CONTEXT_ANSWER, sources=[])

        prompt = fill_prompt_template(
            RAG_QUERY_PROMPT,
            decline=INSUFFICIENT_CONTEXT_ANSWER,
            context=build_context(sources),
            query=query,
        )
        answer = await self._llm.complete(system_prompt=_SYSTEM_PROMPT, user_prompt=prompt)

        logger.info(
            "rag_answer_complete",
            query_length=len(query),
            sources=len(sources),
            top_score=sources[0].similarity_score,
        )
        return RAGAnswer(answer=answer.strip(), sources=sources)


def build_context(sources: list[RetrievedChunk]) -> str:
    """Render retrieved chunks as ``---`` delimited CONTENT/METADATA blocks."""
    blocks = []
    for source in sources:
        metadata = ", ".join(f"{k}: {v}" for k, v in _flatten(source).items())
        blocks.append(f"---\nCONTENT: {source.chunk.text}\nMETADATA: {metadata}\n---")
    return "\n\n".join(blocks)


def _flatten(source: RetrievedChunk) -> dict[str, Any]:
    chunk: DocumentChunk = source.chunk
    flat: dict[str, Any] = {
        "document_id": chunk.document_id,
        "title": chunk.title,
        "source": chunk.source,
        "chunk": f"{chunk.chunk_index + 1}/{chunk.total_chunks}",
        "similarity": round(source.similarity_score, 3),
    }
    if chunk.category:
        flat["category"] = chunk.category
    if chunk.tags:
        flat["tags"] = "; ".join(chunk.tags)
    if chunk.entities:
        flat["entities"] = "; ".join(e.name for e in chunk.entities)
    if chunk.summary:
        flat["summary"] = chunk.summary
    return flat
