"""Unit tests for prompt templates and variable substitution."""

from __future__ import annotations

import pytest

from src.services.prompts import (
    DOCUMENT_SUMMARY_PROMPT,
    RAG_QUERY_PROMPT,
    fill_prompt_template,
    get_all_prompt_templates,
)
from src.utils.errors import ValidationError


class TestFillPromptTemplate:
    def test_substitutes_document(self) -> None:
        prompt = fill_prompt_template(DOCUMENT_SUMMARY_PROMPT, document="The convoy left at dawn.")

        assert "The convoy left at dawn." in prompt
        assert prompt.rstrip().endswith("SUMMARY:")
        assert "{document}" not in prompt

    def test_rag_prompt_takes_three_variables(self) -> None:
        prompt = fill_prompt_template(
            RAG_QUERY_PROMPT, decline="No idea.", context="---\nCONTENT: x\n---", query="Who?"
        )

        assert 'say "No idea."' in prompt
        assert "CONTENT: x" in prompt
        assert "USER QUERY:\nWho?" in prompt

    def test_missing_variable_raises(self) -> None:
        with pytest.raises(ValidationError, match="context, query"):
            fill_prompt_template(RAG_QUERY_PROMPT, decline="No idea.")

    def test_empty_variable_raises(self) -> None:
        with pytest.raises(ValidationError, match="document"):
            fill_prompt_template(DOCUMENT_SUMMARY_PROMPT, document="")

    def test_braces_in_values_are_kept_literally(self) -> None:
        prompt = fill_prompt_template(DOCUMENT_SUMMARY_PROMPT, document='{"key": "value"}')
        assert '{"key": "value"}' in prompt


class TestRegistry:
    def test_all_templates_listed_once(self) -> None:
        templates = get_all_prompt_templates()
        names = [t.name for t in templates]

        assert len(templates) == 5
        assert len(set(names)) == 5
        assert "rag-query" in names

    def test_declared_variables_appear_in_template(self) -> None:
        for template in get_all_prompt_templates():
            for variable in template.variables:
                assert "{" + variable + "}" in template.template
