"""Text normalization utilities for event titles and AI-generated prose.

Two concerns live here:

1. **Identity normalization** -- ``normalize_title`` produces the key used
   for cross-source title deduplication, and ``clean_optional`` collapses
   blank strings to ``None`` so "absent" has a single representation.

2. **Response cleanup** -- ``strip_markdown_artifacts`` removes code fences,
   ``**bold**`` markers and ``[1]``-style citation markers that the search
   endpoint leaves in plain-text answers.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")
_FENCE_RE = re.compile(r"```(?:\w+)?\s*\n?|\n?\s*```")
_BOLD_RE = re.compile(r"\*\*(.*?)\*\*", re.DOTALL)
_CITATION_RE = re.compile(r"\[\d+\]")
_THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def normalize_title(title: str | None) -> str:
    """Trim, lowercase, and collapse internal whitespace runs to one space.

    ``"  JAZZ   night "`` and ``"Jazz Night"`` both become ``"jazz night"``.
    """
    if not title:
        return ""
    return _WHITESPACE_RE.sub(" ", title.strip()).lower()


def clean_optional(value: str | None) -> str | None:
    """Return the stripped value, or ``None`` for missing/blank input."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def strip_markdown_artifacts(text: str) -> str:
    """Remove fences, bold markers, citation markers and reasoning blocks."""
    cleaned = _THINK_BLOCK_RE.sub("", text)
    cleaned = _FENCE_RE.sub("", cleaned)
    cleaned = _BOLD_RE.sub(r"\1", cleaned)
    cleaned = _CITATION_RE.sub("", cleaned)
    # Citation removal can leave "word ." or double spaces behind.
    cleaned = re.sub(r"[ \t]+([.,;:!?])", r"\1", cleaned)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    return cleaned.strip()
