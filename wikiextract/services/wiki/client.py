"""Async client for the MediaWiki action API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from wikiextract.errors import ArticleNotFoundError, FetchError, ParseError, ParseReason, RequestTimeoutError
from wikiextract.services.wiki.cleaner import count_words
from wikiextract.services.wiki.models import ArticlePreview, RawDocument
from wikiextract.urls import article_url

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://en.wikipedia.org/w/api.php"
DEFAULT_USER_AGENT = "wikiextract/0.1 (encyclopedia extraction tool)"
REQUEST_TIMEOUT = 30.0
PREVIEW_TIMEOUT = 10.0


def _category_name(entry: Dict[str, Any]) -> str:
    # formatversion=2 uses "category", the legacy format uses "*"
    name = entry.get("category") or entry.get("*") or entry.get("title") or ""
    return str(name).replace("Category:", "").replace("_", " ").strip()


def _html_field(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("*", ""))
    return "" if value is None else str(value)


class WikipediaClient:
    """Fetches full articles, previews and existence checks from Wikipedia."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_s: float = REQUEST_TIMEOUT,
        preview_timeout_s: float = PREVIEW_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url
        self.timeout_s = timeout_s
        self.preview_timeout_s = preview_timeout_s
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent, "Accept-Encoding": "gzip"},
            timeout=timeout_s,
            transport=transport,
        )

    async def __aenter__(self) -> "WikipediaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, params: Dict[str, Any], timeout_s: float) -> httpx.Response:
        query = {"format": "json", "origin": "*", **params}
        try:
            return await self._client.get(self.api_url, params=query, timeout=timeout_s)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"Wikipedia request timed out after {timeout_s}s") from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Wikipedia connection error: {exc}") from exc

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        status = response.status_code
        if status == 200:
            return
        if status == 429:
            raise FetchError("rate limited", status_code=status)
        if 500 <= status <= 599:
            raise FetchError("server error", status_code=status)
        raise FetchError("unexpected status", status_code=status)

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError("invalid JSON in response", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise FetchError("invalid response shape", status_code=response.status_code)
        return data

    async def fetch_document(self, title: str) -> RawDocument:
        """Fetch rendered article HTML plus categories for a title."""
        logger.info("Fetching article: %s", title)
        response = await self._get(
            {
                "action": "parse",
                "page": title,
                "prop": "text|categories|displaytitle|sections",
                "disableeditsection": "true",
                "redirects": "true",
                "formatversion": "2",
            },
            self.timeout_s,
        )
        logger.info("Received response: %s", response.status_code)
        self._check_status(response)
        data = self._decode(response)

        error = data.get("error")
        if isinstance(error, dict):
            if error.get("code") == "missingtitle":
                raise ArticleNotFoundError(title)
            raise FetchError(f"API error {error.get('code')}: {error.get('info', '')}")

        parse = data.get("parse")
        if not isinstance(parse, dict):
            raise ParseError(ParseReason.MISSING_CONTENT, title)

        markup = _html_field(parse.get("text"))
        document = RawDocument(
            title=str(parse.get("title") or title),
            page_id=int(parse.get("pageid") or 0),
            display_title=_html_field(parse.get("displaytitle")) or title,
            markup=markup,
            categories=[_category_name(cat) for cat in parse.get("categories") or []],
            word_count=count_words(markup),
        )
        logger.info("Fetched %s (%d words)", document.title, document.word_count)
        return document

    async def fetch_preview(self, title: str) -> ArticlePreview:
        """Fetch intro extract, visible categories and thumbnail without parsing HTML."""
        response = await self._get(
            {
                "action": "query",
                "formatversion": "2",
                "titles": title,
                "prop": "extracts|categories|pageimages|info",
                "exintro": "true",
                "explaintext": "true",
                "exsentences": "4",
                "cllimit": "10",
                "clshow": "!hidden",
                "piprop": "thumbnail",
                "pithumbsize": "200",
                "inprop": "url",
                "redirects": "true",
            },
            self.preview_timeout_s,
        )
        self._check_status(response)
        page = self._first_page(self._decode(response))
        if page is None:
            raise ParseError(ParseReason.MISSING_CONTENT, title)
        if page.get("missing") is not None or page.get("invalid") is not None:
            raise ArticleNotFoundError(title)

        thumbnail = page.get("thumbnail") or {}
        return ArticlePreview(
            title=str(page.get("title") or title),
            extract=str(page.get("extract") or ""),
            categories=[_category_name(cat) for cat in page.get("categories") or []],
            thumbnail=thumbnail.get("source") if isinstance(thumbnail, dict) else None,
            page_url=str(page.get("fullurl") or article_url(title)),
        )

    async def page_exists(self, title: str) -> bool:
        """
        Check whether a page exists.

        Returns False only when the API marks the page missing or invalid.
        Transport failures and non-200 answers raise, leaving the decision to
        the caller.
        """
        response = await self._get(
            {"action": "query", "titles": title, "formatversion": "2"},
            self.preview_timeout_s,
        )
        self._check_status(response)
        data = self._decode(response)

        pages = (data.get("query") or {}).get("pages")
        if isinstance(pages, dict):
            # legacy format keys pages by id, "-1" for missing titles
            if "-1" in pages:
                return False
            return bool(pages)
        page = self._first_page(data)
        if page is None:
            raise FetchError(f"no page information for {title!r}")
        return page.get("missing") is None and page.get("invalid") is None

    @staticmethod
    def _first_page(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pages: List[Any] = (data.get("query") or {}).get("pages") or []
        if isinstance(pages, list) and pages and isinstance(pages[0], dict):
            return pages[0]
        return None
