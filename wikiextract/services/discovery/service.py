"""Model-driven article discovery with existence validation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from wikiextract.errors import FetchError, RequestTimeoutError, ValidationError
from wikiextract.services.discovery.json_recovery import parse_search_response
from wikiextract.services.discovery.models import (
    SearchBatch,
    SearchCandidate,
    SearchResult,
    SearchStep,
)
from wikiextract.services.llm.client import CompletionClient
from wikiextract.services.wiki.client import WikipediaClient

logger = logging.getLogger(__name__)

SearchStepCallback = Callable[[SearchStep, str], None]
Sleep = Callable[[float], Awaitable[None]]

SEARCH_SYSTEM_PROMPT = """You are a Wikipedia research assistant. Identify English Wikipedia articles that match a user's search query.

Guidelines:
- English Wikipedia articles only
- Include directly relevant articles and closely related topics
- Titles must match the Wikipedia article title exactly
- Give VERY brief descriptions (under 50 characters)
- Do NOT include disambiguation pages

RULES:
1. Respond with valid JSON only, no markdown or code blocks
2. Keep descriptions under 50 characters so the response is not truncated
3. Always close every bracket of the JSON structure"""


def estimation_prompt(query: str, batch_size: int) -> str:
    return f"""Search query: "{query}"

Task:
1. Estimate the total number of relevant Wikipedia articles for this query
2. Return the first {batch_size} most relevant article titles with SHORT descriptions

Respond with this exact JSON (no markdown):
{{"estimatedTotal": <number>, "reasoning": "<brief>", "articles": [{{"title": "<Wikipedia title>", "description": "<under 50 chars>"}}]}}

Example:
{{"estimatedTotal": 500, "reasoning": "Broad historical topic", "articles": [{{"title": "Ancient Rome", "description": "Roman civilization 8th c BC-5th c AD"}}]}}

Generate exactly {batch_size} articles. Ensure valid JSON with all brackets closed."""


def continuation_prompt(
    query: str, already_loaded: Sequence[str], batch_number: int, batch_size: int, title_cap: int
) -> str:
    loaded = ", ".join(list(already_loaded)[:title_cap])
    return f"""Search query: "{query}"
Batch {batch_number + 1}. Already provided (do not repeat): {loaded}...

Return {batch_size} MORE relevant Wikipedia articles with SHORT descriptions (under 50 chars).

JSON format (no markdown):
{{"articles": [{{"title": "<title>", "description": "<under 50 chars>"}}], "hasMore": true/false}}

Ensure valid JSON with all brackets closed."""


def _chunks(items: Sequence[SearchCandidate], size: int) -> Iterable[Sequence[SearchCandidate]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class DiscoveryService:
    """Stateless: every call returns its token usage for the caller's session."""

    def __init__(
        self,
        completion_client: CompletionClient,
        wiki_client: WikipediaClient,
        batch_size: int = 50,
        max_tokens: int = 8192,
        validation_batch_size: int = 20,
        validation_pause_s: float = 0.1,
        continuation_title_cap: int = 50,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.completion_client = completion_client
        self.wiki_client = wiki_client
        self.batch_size = batch_size
        self.max_tokens = max_tokens
        self.validation_batch_size = max(1, validation_batch_size)
        self.validation_pause_s = validation_pause_s
        self.continuation_title_cap = continuation_title_cap
        self._sleep = sleep

    async def discover(
        self, query: str, on_step: Optional[SearchStepCallback] = None
    ) -> SearchBatch:
        """Initial search: estimate the result count and return the first validated batch."""
        query = self._check_query(query)
        logger.info("Discovery start: %r (batch %d, max tokens %d)", query, self.batch_size, self.max_tokens)
        self._emit(on_step, SearchStep.PREPARING_QUERY, "Building search prompt...")
        prompt = estimation_prompt(query, self.batch_size)
        return await self._run(query, prompt, set(), on_step)

    async def continue_discovery(
        self,
        query: str,
        already_loaded_titles: Sequence[str],
        batch_number: int,
        on_step: Optional[SearchStepCallback] = None,
    ) -> SearchBatch:
        """Next batch for a query, skipping titles the caller already has."""
        query = self._check_query(query)
        logger.info(
            "Loading batch %d for %r (%d already loaded)",
            batch_number + 1,
            query,
            len(already_loaded_titles),
        )
        self._emit(on_step, SearchStep.PREPARING_QUERY, "Preparing continuation request...")
        prompt = continuation_prompt(
            query,
            already_loaded_titles,
            batch_number,
            self.batch_size,
            self.continuation_title_cap,
        )
        loaded = {title.lower() for title in already_loaded_titles}
        batch = await self._run(query, prompt, loaded, on_step)
        # the estimate only comes from the initial search
        return SearchBatch(batch.candidates, 0, batch.input_tokens, batch.output_tokens)

    async def _run(
        self,
        query: str,
        prompt: str,
        exclude: set[str],
        on_step: Optional[SearchStepCallback],
    ) -> SearchBatch:
        self._emit(on_step, SearchStep.CONTACTING_MODEL, "Waiting for model response...")
        started = time.monotonic()
        completion = await self.completion_client.complete(
            prompt, system=SEARCH_SYSTEM_PROMPT, max_tokens=self.max_tokens
        )
        logger.info(
            "Model responded in %.1fs (%d chars, %d in / %d out tokens)",
            time.monotonic() - started,
            len(completion.text),
            completion.usage.input_tokens,
            completion.usage.output_tokens,
        )
        logger.debug("Response preview: %s", completion.text[:500])

        self._emit(on_step, SearchStep.PARSING_RESPONSE, "Extracting article data...")
        parsed = parse_search_response(completion.text)
        candidates = self._dedupe(parsed.candidates, exclude)
        if not candidates:
            logger.warning("No usable candidates parsed for %r", query)

        self._emit(
            on_step,
            SearchStep.VALIDATING,
            f"Checking {len(candidates)} articles against Wikipedia...",
        )
        results = await self.validate(candidates)
        self._emit(on_step, SearchStep.COMPLETE, f"Found {len(results)} articles")
        return SearchBatch(
            candidates=results,
            estimated_total=parsed.estimated_total,
            input_tokens=completion.usage.input_tokens,
            output_tokens=completion.usage.output_tokens,
        )

    async def validate(self, candidates: Sequence[SearchCandidate]) -> List[SearchResult]:
        """
        Keep candidates that exist on Wikipedia.

        Checks run concurrently in fixed-size batches with a short pause in
        between. A check that fails with a network or status error keeps the
        candidate; only an explicit missing page drops it.
        """
        results: List[SearchResult] = []
        rejected = 0
        for index, chunk in enumerate(_chunks(candidates, self.validation_batch_size)):
            if index:
                await self._sleep(self.validation_pause_s)
            checks = await asyncio.gather(*(self._exists(candidate) for candidate in chunk))
            for candidate, exists in zip(chunk, checks):
                if exists:
                    results.append(SearchResult.from_title(candidate.title, candidate.description))
                else:
                    rejected += 1
        logger.info("Validation summary: %d valid, %d missing", len(results), rejected)
        return results

    async def _exists(self, candidate: SearchCandidate) -> bool:
        try:
            return await self.wiki_client.page_exists(candidate.title)
        except (FetchError, RequestTimeoutError) as exc:
            logger.warning("Existence check failed for %r, keeping it: %s", candidate.title, exc)
            return True

    @staticmethod
    def _dedupe(candidates: Iterable[SearchCandidate], exclude: set[str]) -> List[SearchCandidate]:
        seen = set(exclude)
        unique: List[SearchCandidate] = []
        for candidate in candidates:
            key = candidate.title.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique

    @staticmethod
    def _check_query(query: str) -> str:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        return query

    @staticmethod
    def _emit(on_step: Optional[SearchStepCallback], step: SearchStep, message: str) -> None:
        logger.info("Search step %s: %s", step.value, message)
        if on_step is not None:
            on_step(step, message)
