"""Lenient parsing of model search responses, including truncated JSON."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, NamedTuple

from wikiextract.services.discovery.models import SearchCandidate

logger = logging.getLogger(__name__)

CLOSERS = {"{": "}", "[": "]"}
ARTICLE_PATTERN = re.compile(
    r'\{\s*"title"\s*:\s*"((?:[^"\\]|\\.)+)"\s*,\s*"description"\s*:\s*"((?:[^"\\]|\\.)*)"\s*\}'
)


class ParsedSearchResponse(NamedTuple):
    candidates: List[SearchCandidate]
    estimated_total: int
    has_more: bool


EMPTY = ParsedSearchResponse([], 0, False)


def strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _unclosed(text: str) -> tuple[List[str], bool]:
    """Open brackets still pending at the end of text, ignoring brackets inside strings."""
    stack: List[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in CLOSERS:
            stack.append(char)
        elif char in "}]" and stack and CLOSERS[stack[-1]] == char:
            stack.pop()
    return stack, in_string


def repair_truncated(text: str) -> str:
    """
    Cut a truncated response back to its last complete object and close it.

    Everything after the last ``"}`` is dropped, then the exact closers for
    the brackets still open are appended in reverse order.
    """
    cut = text.rfind('"}')
    repaired = text[: cut + 2] if cut >= 0 else text
    stack, in_string = _unclosed(repaired)
    if in_string:
        repaired += '"'
    closers = "".join(CLOSERS[opener] for opener in reversed(stack))
    logger.debug("Truncation repair appended %r", closers)
    return repaired + closers


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw


def extract_articles_by_pattern(text: str) -> List[SearchCandidate]:
    """Regex fallback: pull every complete title/description object out of raw text."""
    return [
        SearchCandidate(title=_unescape(title).strip(), description=_unescape(description).strip())
        for title, description in ARTICLE_PATTERN.findall(text)
        if title.strip()
    ]


def _as_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def _candidates(articles: Any) -> List[SearchCandidate]:
    candidates: List[SearchCandidate] = []
    if not isinstance(articles, list):
        return candidates
    for article in articles:
        if not isinstance(article, dict):
            continue
        title = article.get("title")
        if isinstance(title, str) and title.strip():
            description = article.get("description")
            candidates.append(
                SearchCandidate(
                    title=title.strip(),
                    description=description.strip() if isinstance(description, str) else "",
                )
            )
    return candidates


def parse_search_response(response: str) -> ParsedSearchResponse:
    """
    Parse ``{"estimatedTotal", "articles": [{"title", "description"}], "hasMore"}``.

    Tries a clean parse, then truncation repair, then a regex scan. The regex
    scan reports the number of recovered articles as the estimate.
    """
    cleaned = strip_fences(response)
    start = cleaned.find("{")
    if start < 0:
        logger.warning("No JSON object found in search response")
        return EMPTY

    if not cleaned.endswith(("}", "]")):
        logger.warning("Search response looks truncated, attempting repair")
        cleaned = repair_truncated(cleaned)

    end = cleaned.rfind("}")
    candidate_json = cleaned[start : end + 1] if end >= start else cleaned[start:]

    try:
        data = json.loads(candidate_json)
    except ValueError as exc:
        logger.warning("Search response is not valid JSON (%s), falling back to pattern scan", exc)
        recovered = extract_articles_by_pattern(cleaned)
        if recovered:
            logger.info("Pattern scan recovered %d articles", len(recovered))
            return ParsedSearchResponse(recovered, len(recovered), True)
        return EMPTY

    if not isinstance(data, dict):
        logger.warning("Search response JSON is not an object")
        return EMPTY

    estimated_total = _as_int(data.get("estimatedTotal"))
    has_more = data.get("hasMore")
    if not isinstance(has_more, bool):
        has_more = estimated_total > 0
    if "reasoning" in data:
        logger.debug("Model reasoning: %s", data["reasoning"])
    return ParsedSearchResponse(_candidates(data.get("articles")), estimated_total, has_more)
