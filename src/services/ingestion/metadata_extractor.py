"""LLM-powered enrichment of document chunks.

Uses an :class:`~src.interfaces.llm_provider.ILLMProvider` to derive four
independent pieces of metadata from a chunk of text:

1. **summary** -- a short analyst-style summary (plain text)
2. **entities** -- people, organisations, equipment, locations, events
3. **relationships** -- directed ``source -relation-> target`` triples
4. **classification** -- 0--100 scores per intelligence category

Each extraction is one LLM call with its own prompt template.  The four
calls run concurrently; a malformed JSON reply degrades to an empty
result, and a hard backend failure is recorded in
:attr:`ChunkEnrichment.missing` so the rest of the enrichment still lands.
Only when all four calls fail does :meth:`MetadataExtractor.enrich` raise.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from src.models.rag import ChunkEnrichment, ClassificationScore, Entity, EntityType, Relationship
from src.services.prompts import (
    ANALYST_SYSTEM_PROMPT,
    DOCUMENT_SUMMARY_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    INTELLIGENCE_CLASSIFICATION_PROMPT,
    RELATIONSHIP_EXTRACTION_PROMPT,
    PromptTemplate,
    fill_prompt_template,
)
from src.utils.concurrency import throttled_gather
from src.utils.confidence import enrichment_confidence, label_to_score
from src.utils.errors import DossierError, LLMError
from src.utils.json_extraction import Empty, extract_json

if TYPE_CHECKING:
    from src.interfaces.llm_provider import ILLMProvider

logger = structlog.get_logger(logger_name=__name__)

_EXTRACTIONS = ("summary", "entities", "relationships", "classification")


class MetadataExtractor:
    """Extracts summary, entities, relationships and classification from text.

    A semaphore caps how many LLM requests the extractor has in flight
    across all concurrent :meth:`enrich` calls, so several documents being
    indexed at once do not flood a local model server.

    Parameters
    ----------
    llm:
        The LLM provider used for every extraction prompt.
    max_concurrent:
        Maximum number of concurrent LLM calls (default 4).
    """

    def __init__(self, llm: ILLMProvider, max_concurrent: int = 4) -> None:
        self._llm = llm
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enrich(self, chunk_text: str) -> ChunkEnrichment:
        """Run all four extractions on *chunk_text* and score the result.

        Raises
        ------
        LLMError
            Only if every extraction failed at the backend.
        """
        results = await throttled_gather(
            [
                self.summarize(chunk_text),
                self._entities_with_labels(chunk_text),
                self.extract_relationships(chunk_text),
                self.classify(chunk_text),
            ],
            self._semaphore,
        )

        failures: dict[str, BaseException] = {}
        for name, result in zip(_EXTRACTIONS, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures[name] = result

        if len(failures) == len(_EXTRACTIONS):
            first = failures[_EXTRACTIONS[0]]
            raise LLMError(
                message=f"All metadata extractions failed: {first}",
                provider_name=self._llm.get_provider_name(),
            ) from first

        if failures:
            logger.warning(
                "enrichment_partial",
                missing=list(failures),
                errors={name: str(exc) for name, exc in failures.items()},
            )

        summary_result, entity_result, relationship_result, classification_result = results
        summary = "" if "summary" in failures else summary_result
        entities, entity_labels = ([], []) if "entities" in failures else entity_result
        relationships = [] if "relationships" in failures else relationship_result
        classification = [] if "classification" in failures else classification_result

        confidence = enrichment_confidence(
            entity_labels,
            [r.confidence for r in relationships],
            [c.confidence for c in classification],
        )

        logger.info(
            "enrichment_complete",
            entities=len(entities),
            relationships=len(relationships),
            categories=len(classification),
            confidence=round(confidence, 3),
        )
        return ChunkEnrichment(
            summary=summary,
            entities=entities,
            relationships=relationships,
            classification=classification,
            confidence_score=confidence,
            missing=list(failures),
        )

    async def summarize(self, text: str) -> str:
        """Return a concise analyst summary of *text*."""
        response = await self._ask(DOCUMENT_SUMMARY_PROMPT, text, temperature=0.3)
        return response.strip()

    async def extract_entities(self, text: str) -> list[Entity]:
        """Return the named entities mentioned in *text*."""
        entities, _ = await self._entities_with_labels(text)
        return entities

    async def extract_relationships(self, text: str) -> list[Relationship]:
        """Return directed relationships between entities in *text*."""
        response = await self._ask(RELATIONSHIP_EXTRACTION_PROMPT, text)
        relationships: list[Relationship] = []
        for item in self._items(response, key="relationships", extraction="relationships"):
            source = str(item.get("source") or item.get("source_entity") or "").strip()
            target = str(item.get("target") or item.get("target_entity") or "").strip()
            if not source or not target:
                continue
            relationships.append(
                Relationship(
                    source=source,
                    relation=str(item.get("relation") or item.get("type") or "related_to"),
                    target=target,
                    description=str(item.get("description") or ""),
                    confidence=str(item.get("confidence") or "low").lower(),
                )
            )
        return relationships

    async def classify(self, text: str) -> list[ClassificationScore]:
        """Return per-category intelligence classification scores for *text*.

        Accepts either a list of ``{category, confidence}`` objects or an
        object keyed by category name.
        """
        response = await self._ask(INTELLIGENCE_CLASSIFICATION_PROMPT, text)
        result = extract_json(response)
        if isinstance(result, Empty):
            logger.debug("classification_empty", reason=result.reason)
            return []

        value = result.value
        if isinstance(value, dict) and isinstance(value.get("classification"), (list, dict)):
            value = value["classification"]
        if isinstance(value, dict) and "category" in value:
            value = [value]

        scores: list[ClassificationScore] = []
        if isinstance(value, list):
            for item in value:
                if isinstance(item, dict) and item.get("category"):
                    scores.append(self._score(str(item["category"]), item))
        elif isinstance(value, dict):
            for category, item in value.items():
                scores.append(self._score(str(category), item))
        return scores

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ask(self, template: PromptTemplate, text: str, temperature: float = 0.1) -> str:
        """Send one extraction prompt; backend failures surface as LLMError."""
        prompt = fill_prompt_template(template, document=text)
        try:
            return await self._llm.complete(
                system_prompt=ANALYST_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=temperature,
            )
        except LLMError:
            raise
        except DossierError as exc:
            raise LLMError(
                message=f"{template.name} failed: {exc.message}",
                provider_name=exc.provider_name or self._llm.get_provider_name(),
            ) from exc

    async def _entities_with_labels(self, text: str) -> tuple[list[Entity], list[str]]:
        response = await self._ask(ENTITY_EXTRACTION_PROMPT, text)
        entities: list[Entity] = []
        labels: list[str] = []
        for item in self._items(response, key="entities", extraction="entities"):
            name = str(item.get("name") or item.get("entity") or "").strip()
            if not name:
                continue
            label = str(item.get("confidence") or "low").lower()
            mentions = item.get("mentions")
            entities.append(
                Entity(
                    name=name,
                    entity_type=EntityType.parse(item.get("type") or item.get("entity_type")),
                    mentions=mentions if isinstance(mentions, int) and mentions >= 1 else 1,
                    confidence_score=label_to_score(label),
                )
            )
            labels.append(label)
        return entities, labels

    @staticmethod
    def _items(response: str, key: str, extraction: str) -> list[dict[str, Any]]:
        """Return the list of JSON objects in *response*, or ``[]``.

        A bare array is used as-is; an object is unwrapped via *key* when it
        holds a list there, otherwise treated as a single item.
        """
        result = extract_json(response)
        if isinstance(result, Empty):
            logger.debug("extraction_empty", extraction=extraction, reason=result.reason)
            return []

        value = result.value
        if isinstance(value, dict):
            items = value[key] if isinstance(value.get(key), list) else [value]
        elif isinstance(value, list):
            items = value
        else:
            return []
        return [item for item in items if isinstance(item, dict)]

    @staticmethod
    def _score(category: str, item: object) -> ClassificationScore:
        if isinstance(item, dict):
            raw, justification = item.get("confidence", 0), str(item.get("justification") or "")
        else:
            raw, justification = item, ""
        try:
            confidence = float(raw)
        except (TypeError, ValueError):
            confidence = 0.0
        return ClassificationScore(
            category=category,
            confidence=max(0.0, min(100.0, confidence)),
            justification=justification,
        )
