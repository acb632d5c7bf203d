"""Text normalization helpers for text pulled out of article markup."""

from __future__ import annotations

import html
import re

ZERO_WIDTH_PATTERN = re.compile(r"[\u200b\u200c\u200d\u2060\ufeff]")
WHITESPACE_PATTERN = re.compile(r"\s+")
SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:])")
TAG_PATTERN = re.compile(r"<[^>]+>")
# citation markers that survive sanitization, e.g. "[12]" or "[citation needed]"
CITATION_PATTERN = re.compile(r"\[(?:\d+|[a-z]|citation needed|note \d+)\]", re.IGNORECASE)


def clean_text(text: str) -> str:
    """Collapse whitespace and strip leftover citation markers from extracted text."""
    cleaned = ZERO_WIDTH_PATTERN.sub("", text)
    cleaned = cleaned.replace("\xa0", " ")
    cleaned = CITATION_PATTERN.sub("", cleaned)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned)
    cleaned = SPACE_BEFORE_PUNCT.sub(r"\1", cleaned)
    return cleaned.strip()


def count_words(markup: str) -> int:
    """Count whitespace separated words in markup once tags are stripped."""
    if not markup:
        return 0
    text = html.unescape(TAG_PATTERN.sub(" ", markup))
    return len(text.split())


def word_count(text: str) -> int:
    return len(text.split())
