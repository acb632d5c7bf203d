"""Article URL and title normalization."""

from __future__ import annotations

from typing import NamedTuple
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from wikiextract.errors import ValidationError

WIKI_HOST = "en.wikipedia.org"
MOBILE_HOST = "en.m.wikipedia.org"
WIKI_BASE_URL = f"https://{WIKI_HOST}"
WIKI_PATH_PREFIX = "/wiki/"


class ResolvedSource(NamedTuple):
    title: str
    url: str


def article_url(title: str, base_url: str = WIKI_BASE_URL) -> str:
    """Desktop article URL for a title, spaces turned into underscores."""
    slug = quote(title.strip().replace(" ", "_"), safe="_(),'!:*-.~/")
    return f"{base_url.rstrip('/')}{WIKI_PATH_PREFIX}{slug}"


def title_from_url(url: str) -> str:
    """Title from a /wiki/ URL path. Raises ValidationError for other shapes."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if "wikipedia.org" not in host:
        raise ValidationError(f"Not a Wikipedia URL: {url}")
    if not parts.path.startswith(WIKI_PATH_PREFIX) or len(parts.path) <= len(WIKI_PATH_PREFIX):
        raise ValidationError(f"URL must point at a /wiki/ article: {url}")
    return unquote(parts.path[len(WIKI_PATH_PREFIX) :]).replace("_", " ").strip()


def _normalize_url(url: str) -> str:
    parts = urlsplit(url)
    netloc = parts.netloc
    if netloc.lower() == MOBILE_HOST:
        netloc = WIKI_HOST
    return urlunsplit(parts._replace(scheme="https", netloc=netloc, query="", fragment=""))


def resolve_source(source: str) -> ResolvedSource:
    """
    Resolve a URL or bare title into ``(title, canonical_url)``.

    Accepts full URLs, scheme-less ``en.wikipedia.org/wiki/...`` and
    ``en.m.wikipedia.org`` mobile links, and plain titles. Bare input
    containing a slash is rejected.
    """
    trimmed = (source or "").strip()
    if not trimmed:
        raise ValidationError("Empty article identifier")

    lowered = trimmed.lower()
    if lowered.startswith(("http://", "https://")):
        candidate = trimmed
    elif lowered.startswith(("en.wikipedia.org", "en.m.wikipedia.org", "wikipedia.org")):
        candidate = f"https://{trimmed}"
    elif "/" in trimmed:
        raise ValidationError(f"Not a Wikipedia URL or title: {trimmed}")
    else:
        return ResolvedSource(title=trimmed.replace("_", " "), url=article_url(trimmed))

    url = _normalize_url(candidate)
    title = title_from_url(url)
    if not title:
        raise ValidationError(f"URL has no article title: {trimmed}")
    return ResolvedSource(title=title, url=url)


def parse_source_list(text: str) -> tuple[list[ResolvedSource], list[str]]:
    """Resolve one source per line, returning unique valid sources and rejected lines."""
    valid: list[ResolvedSource] = []
    invalid: list[str] = []
    seen: set[str] = set()
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            resolved = resolve_source(line)
        except ValidationError:
            invalid.append(line)
            continue
        key = resolved.title.lower()
        if key not in seen:
            seen.add(key)
            valid.append(resolved)
    return valid, invalid
