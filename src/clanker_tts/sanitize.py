"""Turn assistant markdown into plain text worth speaking."""

from __future__ import annotations

import re

_CODE_FENCE = re.compile(r"```[\s\S]*?```")
_MARKDOWN_PUNCT = re.compile(r"[*_~`#]")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_EMPTY_LINK = re.compile(r"\[\]\([^)]*\)")


def _clean_once(text: str) -> str:
    text = _CODE_FENCE.sub("", text)
    text = _MARKDOWN_PUNCT.sub("", text)
    text = _EMPTY_LINK.sub("", text)
    text = _LINK.sub(r"\1", text)
    return text.strip()


def clean_text(text: str) -> str:
    """Strip code fences, emphasis/heading marks and link syntax.

    Nested constructs (``[[a](b)](c)``) can expose new markup once the
    outer layer is gone, so passes repeat until nothing changes.  The
    result is therefore a fixed point: cleaning it again is a no-op.

    An empty return value means there is nothing to speak.
    """
    if not text:
        return ""
    previous = None
    while text != previous:
        previous = text
        text = _clean_once(text)
    return text


def preview(text: str, limit: int = 50) -> str:
    """First *limit* characters of *text* for log lines."""
    text = " ".join(text.split())
    return text[:limit] + ("..." if len(text) > limit else "")
