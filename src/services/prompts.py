"""Prompt templates for document analysis and grounded answering.

Each template declares the variables it needs; :func:`fill_prompt_template`
refuses to send a prompt with a hole in it.  Placeholders use
``str.format`` syntax, so literal braces inside a template must be doubled.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from src.utils.errors import ValidationError

ANALYST_SYSTEM_PROMPT = "You are an intelligence analyst assistant."

INSUFFICIENT_CONTEXT_ANSWER = "I don't have enough information to answer that question."


class PromptTemplate(BaseModel):
    """A named prompt with the variables it must be filled with."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    template: str
    variables: tuple[str, ...]


DOCUMENT_SUMMARY_PROMPT = PromptTemplate(
    name="document-summary",
    description="Generate a concise summary of a document",
    template="""\
You are an intelligence analyst assistant. Provide a concise summary of the following document.
Focus on key information that would be relevant for intelligence analysis.
Extract the main points, key findings, and important details.

DOCUMENT:
{document}

SUMMARY:""",
    variables=("document",),
)

ENTITY_EXTRACTION_PROMPT = PromptTemplate(
    name="entity-extraction",
    description="Extract entities from a document",
    template="""\
You are an intelligence analyst assistant. Extract all relevant entities from the following document.
Focus on the following entity types:
- People (names, roles, affiliations)
- Organizations (names, types, locations)
- Locations (places, coordinates, regions)
- Equipment (weapons, vehicles, technology)
- Events (meetings, operations, incidents)
- Dates and Times

For each entity, provide:
1. The entity name ("name")
2. The entity type ("type")
3. A brief description or context ("description")
4. The confidence level ("confidence": high, medium, low)

DOCUMENT:
{document}

ENTITIES (as a JSON array):""",
    variables=("document",),
)

RELATIONSHIP_EXTRACTION_PROMPT = PromptTemplate(
    name="relationship-extraction",
    description="Extract relationships between entities",
    template="""\
You are an intelligence analyst assistant. Extract relationships between entities in the following document.
Focus on relationships such as:
- Person to Person (e.g., colleague, superior, subordinate)
- Person to Organization (e.g., member, leader, employee)
- Person to Location (e.g., resident, visitor, native)
- Organization to Organization (e.g., parent, subsidiary, partner)
- Organization to Location (e.g., headquarters, branch, area of operation)
- Equipment to Person/Organization (e.g., owner, operator, manufacturer)

For each relationship, provide:
1. The source entity ("source")
2. The relationship type ("relation")
3. The target entity ("target")
4. A brief description or context ("description")
5. The confidence level ("confidence": high, medium, low)

DOCUMENT:
{document}

RELATIONSHIPS (as a JSON array):""",
    variables=("document",),
)

INTELLIGENCE_CLASSIFICATION_PROMPT = PromptTemplate(
    name="intelligence-classification",
    description="Classify a document by intelligence categories",
    template="""\
You are an intelligence analyst assistant. Classify the following document according to intelligence categories.
Consider the following categories:
- HUMINT (Human Intelligence)
- SIGINT (Signals Intelligence)
- OSINT (Open Source Intelligence)
- IMINT (Imagery Intelligence)
- MASINT (Measurement and Signature Intelligence)
- GEOINT (Geospatial Intelligence)
- TECHINT (Technical Intelligence)

For each applicable category, provide:
1. The category name ("category")
2. A confidence score from 0 to 100 ("confidence")
3. A brief justification ("justification")

DOCUMENT:
{document}

CLASSIFICATION (as a JSON array):""",
    variables=("document",),
)

RAG_QUERY_PROMPT = PromptTemplate(
    name="rag-query",
    description="Generate a response to a query using retrieved context",
    template="""\
You are an intelligence analysis assistant. Use ONLY the following information to answer the user's question.
If you don't know the answer based on the provided information, say "{decline}"
Do not make up or hallucinate any information.

CONTEXT INFORMATION:
{context}

USER QUERY:
{query}

RESPONSE:""",
    variables=("decline", "context", "query"),
)

_ALL_TEMPLATES: tuple[PromptTemplate, ...] = (
    DOCUMENT_SUMMARY_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    RELATIONSHIP_EXTRACTION_PROMPT,
    INTELLIGENCE_CLASSIFICATION_PROMPT,
    RAG_QUERY_PROMPT,
)


def fill_prompt_template(template: PromptTemplate, **values: str) -> str:
    """Substitute *values* into *template*.

    Raises
    ------
    ValidationError
        If any declared variable is missing or empty.
    """
    missing = [name for name in template.variables if not values.get(name)]
    if missing:
        raise ValidationError(
            message=f"Missing variable(s) for prompt '{template.name}': {', '.join(missing)}"
        )
    return template.template.format(**{name: values[name] for name in template.variables})


def get_all_prompt_templates() -> list[PromptTemplate]:
    return list(_ALL_TEMPLATES)
