"""Fetch, parse and optionally enrich one article into an Extraction."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

from wikiextract.costs import DEFAULT_PRICING, Pricing, calculate_cost, format_cost
from wikiextract.errors import AIError, ExtractionCancelled, ExtractorError, ValidationError
from wikiextract.services.extraction.models import Extraction, ExtractionMetadata
from wikiextract.services.llm.enrichment import EnrichmentOrchestrator, clamp_ratio
from wikiextract.services.llm.models import EnrichmentResult, ExtractionStep, TokenUsage
from wikiextract.services.wiki.client import WikipediaClient
from wikiextract.services.wiki.models import ParsedDocument
from wikiextract.services.wiki.parser import DEFAULT_MAX_TABLE_ROWS, parse_document
from wikiextract.urls import resolve_source

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExtractionStep], None]
Sleep = Callable[[float], Awaitable[None]]


class CancelToken:
    """Cancellation flag checked by the pipeline at every step boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, step: ExtractionStep) -> None:
        if self.cancelled:
            logger.info("Extraction cancelled before %s", step.value)
            raise ExtractionCancelled(f"cancelled before {step.value}")


class ProgressLog:
    """Progress observer that records every step it sees, in order."""

    def __init__(self) -> None:
        self.steps: List[ExtractionStep] = []

    def __call__(self, step: ExtractionStep) -> None:
        self.steps.append(step)


@dataclass(frozen=True)
class BatchFailure:
    source: str
    error: str
    error_type: str


@dataclass
class BatchReport:
    extractions: List[Extraction] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def usage(self) -> TokenUsage:
        total = TokenUsage()
        for extraction in self.extractions:
            if extraction.metadata.tokens_used is not None:
                total += extraction.metadata.tokens_used
        return total


class ExtractionPipeline:
    def __init__(
        self,
        wiki_client: WikipediaClient,
        enrichment: Optional[EnrichmentOrchestrator] = None,
        max_table_rows: int = DEFAULT_MAX_TABLE_ROWS,
        default_ratio: float = 0.5,
        request_delay_s: float = 1.0,
        max_batch_size: int = 200,
        pricing: Pricing = DEFAULT_PRICING,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.wiki_client = wiki_client
        self.enrichment = enrichment
        self.max_table_rows = max_table_rows
        self.default_ratio = default_ratio
        self.request_delay_s = request_delay_s
        self.max_batch_size = max_batch_size
        self.pricing = pricing
        self._sleep = sleep

    async def extract(
        self,
        source: str,
        ai_enabled: bool = True,
        summary_ratio: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Extraction:
        """
        Build the Extraction for a URL or title.

        Fetch, parse and validation errors propagate. A failed enrichment
        falls back to the first paragraph and leaves ``ai_enhanced`` False.
        Cancellation is honoured between steps and raises ExtractionCancelled.
        """

        def step(name: ExtractionStep) -> None:
            if cancel is not None:
                cancel.check(name)
            logger.info("Step: %s", name.label)
            if progress is not None:
                progress(name)

        resolved = resolve_source(source)

        step(ExtractionStep.FETCHING)
        raw = await self.wiki_client.fetch_document(resolved.title)

        step(ExtractionStep.PARSING)
        parsed = parse_document(raw, max_table_rows=self.max_table_rows)

        ratio = self.clamp_ratio(summary_ratio)
        result = EnrichmentResult.fallback(parsed)
        tokens: Optional[TokenUsage] = None

        if ai_enabled and self.enrichment is None:
            logger.warning("AI enhancement requested but no completion client is configured")
        elif ai_enabled and parsed.word_count <= 0:
            logger.warning("Nothing to enhance in %s, using basic extraction", parsed.title)
        elif ai_enabled and self.enrichment is not None:
            try:
                result, tokens = await self.enrichment.enrich(parsed, ratio, on_step=step)
            except AIError as exc:
                logger.warning("AI enhancement failed, using basic extraction: %s", exc)
                result, tokens = EnrichmentResult.fallback(parsed), None
            else:
                cost = calculate_cost(tokens, self.pricing)
                logger.info("Enrichment cost: %s", format_cost(cost))

        step(ExtractionStep.COMPLETE)
        extraction = self._build(resolved.url, parsed, result, ratio, tokens)
        logger.info("Extraction complete: %s", parsed.title)
        return extraction

    def clamp_ratio(self, ratio: Optional[float]) -> float:
        """Bound a requested summary ratio, with or without enrichment configured."""
        if self.enrichment is not None:
            return self.enrichment.clamp_ratio(ratio)
        return clamp_ratio(ratio, self.default_ratio)

    @staticmethod
    def _build(
        source_url: str,
        parsed: ParsedDocument,
        result: EnrichmentResult,
        ratio: float,
        tokens: Optional[TokenUsage],
    ) -> Extraction:
        return Extraction(
            metadata=ExtractionMetadata(
                source_url=source_url,
                page_id=parsed.page_id,
                ai_enhanced=tokens is not None,
                summary_ratio=ratio,
                tokens_used=tokens,
            ),
            title=parsed.title,
            summary=result.summary,
            article_type=result.article_type,
            alternate_names=list(parsed.alternate_names),
            summary_word_count=len(result.summary.split()),
            original_word_count=parsed.word_count,
            categories=list(parsed.categories),
            infobox=parsed.infobox,
            tables=list(parsed.tables),
            sections=list(parsed.sections),
            key_facts=list(result.key_facts),
            dates=list(result.dates),
            locations=list(result.locations),
            related_topics=list(result.related_topics),
            see_also=list(parsed.see_also),
        )

    async def run_batch(
        self,
        sources: Sequence[str],
        ai_enabled: bool = True,
        summary_ratio: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> BatchReport:
        """Extract sources one after another, pausing between them and recording failures."""
        if not sources:
            raise ValidationError("No articles to extract")
        if len(sources) > self.max_batch_size:
            raise ValidationError(
                f"Batch of {len(sources)} exceeds the maximum of {self.max_batch_size}"
            )

        report = BatchReport()
        for index, source in enumerate(sources):
            if index:
                await self._sleep(self.request_delay_s)
            logger.info("Batch item %d/%d: %s", index + 1, len(sources), source)
            try:
                extraction = await self.extract(
                    source,
                    ai_enabled=ai_enabled,
                    summary_ratio=summary_ratio,
                    progress=progress,
                    cancel=cancel,
                )
            except ExtractionCancelled:
                raise
            except ExtractorError as exc:
                logger.error("Extraction failed for %s: %s", source, exc)
                report.failures.append(BatchFailure(source, str(exc), type(exc).__name__))
                continue
            report.extractions.append(extraction)
        logger.info(
            "Batch finished: %d extracted, %d failed",
            len(report.extractions),
            len(report.failures),
        )
        return report
