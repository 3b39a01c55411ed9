"""Extract a JSON payload from free-text LLM / AI-search responses.

The search endpoint is asked for bare JSON but routinely wraps it in
markdown fences (```json ... ```), prefixes it with a sentence of
commentary, or (for reasoning models) emits a ``<think>`` block first.

Contract: raw text in, parsed ``dict`` / ``list`` out, or
:class:`JSONExtractionError` when nothing parseable can be found.  Callers
decide what shape they accept.

Strategies, tried in order until one parses:

1. The whole text, stripped.
2. The contents of each fenced code block (``json``-tagged or untagged).
3. The outermost ``{...}`` span, then the outermost ``[...]`` span.
"""

from __future__ import annotations

import json
import re
from typing import Any

from src.utils.errors import JSONExtractionError

_JSON_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def _candidate_texts(text: str) -> list[str]:
    candidates = [text]
    candidates.extend(match.group(1).strip() for match in _JSON_FENCE_RE.finditer(text))

    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])
    return candidates


def extract_json(raw_text: str) -> Any:
    """Parse the first JSON document that can be recovered from *raw_text*.

    Raises
    ------
    JSONExtractionError
        If *raw_text* is empty or no strategy yields valid JSON.
    """
    if not raw_text or not raw_text.strip():
        raise JSONExtractionError("Response text is empty")

    text = _THINK_BLOCK_RE.sub("", raw_text).strip()

    last_error: json.JSONDecodeError | None = None
    for candidate in _candidate_texts(text):
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc

    detail = f": {last_error.msg}" if last_error else ""
    raise JSONExtractionError(f"No valid JSON found in response{detail}")
