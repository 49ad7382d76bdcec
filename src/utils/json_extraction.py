"""Tagged-result JSON extraction from free-text LLM output.

Local models rarely return bare JSON.  Typical replies look like::

    Here are the entities:
    ```json
    [{"name": "Col. Ivanov", "type": "person", "confidence": "high"}]
    ```

:func:`extract_json` tries three candidates in order -- a fenced code
block, the outermost bare array, the outermost bare object -- and returns
either :class:`Parsed` with the first candidate that decodes or
:class:`Empty` with the reason nothing usable was found.  Callers match on
the variant instead of checking for ``None``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

import structlog

logger = structlog.get_logger(logger_name=__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


@dataclass(frozen=True)
class Parsed:
    """A JSON payload was found and decoded."""

    value: Any


@dataclass(frozen=True)
class Empty:
    """No JSON payload could be recovered from the text."""

    reason: str


JsonResult = Union[Parsed, Empty]


def extract_json(text: str) -> JsonResult:
    """Extract the first decodable JSON payload from *text*.

    Returns
    -------
    Parsed | Empty
        ``Empty("blank")`` for blank input, ``Empty("no_match")`` when no
        candidate exists, ``Empty("decode_error")`` when every candidate
        failed to decode.
    """
    if not text or not text.strip():
        return Empty("blank")

    candidates = _candidates(text)
    if not candidates:
        return Empty("no_match")

    for candidate in candidates:
        try:
            return Parsed(json.loads(candidate))
        except json.JSONDecodeError:
            continue

    logger.warning("json_decode_failed", preview=text[:200])
    return Empty("decode_error")


def _candidates(text: str) -> list[str]:
    found: list[str] = []

    fence = _FENCE_RE.search(text)
    if fence:
        found.append(fence.group(1).strip())

    array_start, array_end = text.find("["), text.rfind("]")
    object_start, object_end = text.find("{"), text.rfind("}")

    # An array nested inside an object is not a payload of its own.
    array_is_outer = object_start == -1 or array_start < object_start
    if array_start != -1 and array_end > array_start and array_is_outer:
        found.append(text[array_start : array_end + 1])
    if object_start != -1 and object_end > object_start:
        found.append(text[object_start : object_end + 1])
    return found
