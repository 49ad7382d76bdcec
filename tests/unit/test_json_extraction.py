"""Unit tests for extract_json — tagged Parsed/Empty results from free-text LLM output."""

from __future__ import annotations

import pytest

from src.utils.json_extraction import Empty, Parsed, extract_json


class TestParsed:
    def test_fenced_block(self) -> None:
        text = 'Here is the result:\n```json\n{"a": 1}\n```\nLet me know if you need more.'
        assert extract_json(text) == Parsed({"a": 1})

    def test_fence_without_language_tag(self) -> None:
        assert extract_json("```\n[1, 2]\n```") == Parsed([1, 2])

    def test_bare_array_in_prose(self) -> None:
        assert extract_json("Result: [1, 2, 3] done") == Parsed([1, 2, 3])

    def test_array_of_objects(self) -> None:
        result = extract_json('Entities: [{"name": "A"}, {"name": "B"}]')
        assert result == Parsed([{"name": "A"}, {"name": "B"}])

    def test_object_containing_array_is_not_unwrapped(self) -> None:
        assert extract_json('x {"items": [1]} y') == Parsed({"items": [1]})

    def test_invalid_fence_falls_back_to_bare_object(self) -> None:
        text = '```\nnot json\n```\nActual answer: {"ok": true}'
        assert extract_json(text) == Parsed({"ok": True})


class TestEmpty:
    @pytest.mark.parametrize("text", ["", "   \n\t"])
    def test_blank(self, text: str) -> None:
        assert extract_json(text) == Empty("blank")

    def test_no_candidate(self) -> None:
        assert extract_json("no structured data here") == Empty("no_match")

    def test_decode_error(self) -> None:
        assert extract_json("{not json}") == Empty("decode_error")

    def test_result_variants_are_distinct(self) -> None:
        result = extract_json("{not json}")
        assert isinstance(result, Empty)
        assert not isinstance(result, Parsed)
