"""Sequential LLM enrichment of a parsed article."""

from __future__ import annotations

import logging
import math
import re
from typing import Callable, List, Optional, Tuple

from wikiextract.errors import AIError, AIErrorKind
from wikiextract.services.llm import prompts
from wikiextract.services.llm.client import CompletionClient
from wikiextract.services.llm.models import (
    ArticleType,
    DateEvent,
    DatePrecision,
    EnrichmentResult,
    ExtractionStep,
    KeyFact,
    Location,
    LocationType,
    TokenUsage,
)
from wikiextract.services.wiki.models import ParsedDocument

logger = logging.getLogger(__name__)

StepCallback = Callable[[ExtractionStep], None]

DEFAULT_RATIO = 0.5
MIN_RATIO = 0.4
MAX_RATIO = 0.7
MIN_TARGET_WORDS = 50
MAX_RELATED_TOPICS = 10
MAX_CONTEXT_INFOBOX_FIELDS = 20
UNDER_TARGET_FRACTION = 0.3

# (word count ceiling, section count or None for all, per-section char cap)
CONTEXT_TIERS: List[Tuple[float, Optional[int], Optional[int]]] = [
    (3000, None, None),
    (10000, 10, 1500),
    (math.inf, 15, 1000),
]

LIST_MARKER = re.compile(r"^(?:[-*•]\s+|\d+[.)]\s+)")


def _lines(response: str) -> List[str]:
    result = []
    for line in response.splitlines():
        line = LIST_MARKER.sub("", line.strip()).strip()
        if line:
            result.append(line)
    return result


def parse_key_facts(response: str) -> List[KeyFact]:
    """Parse ``Key: Value`` lines. Lines without a colon are skipped."""
    facts: List[KeyFact] = []
    for line in _lines(response):
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if sep and key and value:
            facts.append(KeyFact(key=key, value=value))
    return facts


def _parse_year(raw: str) -> Optional[int]:
    try:
        return int(raw.replace(",", "").strip())
    except ValueError:
        return None


def parse_dates(response: str) -> List[DateEvent]:
    """Parse ``Date | Event | Year`` lines; BCE years come back negative."""
    events: List[DateEvent] = []
    for line in _lines(response):
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 3 or not parts[0] or not parts[1]:
            continue
        events.append(
            DateEvent(
                event=parts[1],
                date=parts[0],
                year=_parse_year(parts[2]),
                precision=DatePrecision.APPROXIMATE,
            )
        )
    return events


def parse_locations(response: str) -> List[Location]:
    """Parse ``Name | Type | Modern name`` lines."""
    locations: List[Location] = []
    for line in _lines(response):
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 2 or not parts[0]:
            continue
        modern = parts[2] if len(parts) >= 3 and parts[2] else None
        locations.append(
            Location(name=parts[0], type=LocationType.parse(parts[1]), modern_name=modern)
        )
    return locations


def parse_topics(response: str) -> List[str]:
    return _lines(response)[:MAX_RELATED_TOPICS]


def clamp_ratio(
    ratio: Optional[float],
    default: float = DEFAULT_RATIO,
    lower: float = MIN_RATIO,
    upper: float = MAX_RATIO,
) -> float:
    """Bound a summary ratio; None and non-finite values become the default."""
    if ratio is None or not math.isfinite(ratio):
        return default
    return min(max(ratio, lower), upper)


def summary_band(target: int) -> Tuple[int, int]:
    """Acceptable (min, max) summary length for a target word count."""
    if target < 500:
        low, high = target * 0.5, target * 1.5
    else:
        low, high = target * 0.3, target * 1.2
    minimum = max(int(low), 25)
    maximum = max(int(high), minimum + 50)
    return minimum, maximum


class EnrichmentOrchestrator:
    """Runs summary, classification and the four extraction calls in order."""

    def __init__(
        self,
        client: CompletionClient,
        default_ratio: float = DEFAULT_RATIO,
        min_ratio: float = MIN_RATIO,
        max_ratio: float = MAX_RATIO,
    ) -> None:
        self.client = client
        self.default_ratio = default_ratio
        self.min_ratio = min_ratio
        self.max_ratio = max_ratio

    def clamp_ratio(self, ratio: Optional[float]) -> float:
        return clamp_ratio(ratio, self.default_ratio, self.min_ratio, self.max_ratio)

    @staticmethod
    def target_word_count(word_count: int, ratio: float) -> int:
        # rounds halves up
        return max(math.floor(max(word_count, 0) * ratio + 0.5), MIN_TARGET_WORDS)

    @staticmethod
    def build_context(parsed: ParsedDocument) -> str:
        """First paragraph, a size-dependent slice of sections, then infobox fields."""
        parts = [parsed.first_paragraph, ""]
        if parsed.word_count > 0:
            for ceiling, count, char_cap in CONTEXT_TIERS:
                if parsed.word_count < ceiling:
                    break
            sections = parsed.sections if count is None else parsed.sections[:count]
            for section in sections:
                content = section.content if char_cap is None else section.content[:char_cap]
                parts.extend([f"## {section.title}", content, ""])
            if parsed.infobox is not None:
                parts.append("## Key Information")
                parts.extend(
                    f"{item.key}: {item.value}"
                    for item in parsed.infobox.fields[:MAX_CONTEXT_INFOBOX_FIELDS]
                )
        return "\n".join(parts)

    async def enrich(
        self,
        parsed: ParsedDocument,
        target_ratio: Optional[float] = None,
        on_step: Optional[StepCallback] = None,
    ) -> Tuple[EnrichmentResult, TokenUsage]:
        """
        Enrich a parsed article.

        Returns the result with the summed usage reported by the model. An
        article with no words gets the fallback result without any model
        call. AIError propagates so the caller can fall back.
        """
        if parsed.word_count <= 0:
            logger.warning("Article %s has zero word count, returning fallback", parsed.title)
            return EnrichmentResult.fallback(parsed), TokenUsage()

        ratio = self.clamp_ratio(target_ratio)
        context = self.build_context(parsed)
        usage = TokenUsage()

        def step(name: ExtractionStep) -> None:
            logger.info("Enrichment step: %s", name.value)
            if on_step is not None:
                on_step(name)

        step(ExtractionStep.GENERATING_SUMMARY)
        target = self.target_word_count(parsed.word_count, ratio)
        minimum, maximum = summary_band(target)
        completion = await self.client.complete(
            prompts.summary_prompt(parsed.title, context, target, minimum, maximum)
        )
        usage += completion.usage
        summary = completion.text.strip()
        if not summary:
            raise AIError(AIErrorKind.INVALID_RESPONSE, detail="empty summary")
        self._check_summary_length(summary, target, parsed.word_count)

        step(ExtractionStep.CLASSIFYING)
        completion = await self.client.complete(
            prompts.classification_prompt(parsed.title, summary, parsed.categories)
        )
        usage += completion.usage
        article_type = ArticleType.parse(completion.text)

        step(ExtractionStep.EXTRACTING_FACTS)
        completion = await self.client.complete(
            prompts.key_facts_prompt(parsed.title, context, parsed.infobox)
        )
        usage += completion.usage
        key_facts = parse_key_facts(completion.text)

        step(ExtractionStep.EXTRACTING_DATES)
        completion = await self.client.complete(prompts.dates_prompt(parsed.title, context))
        usage += completion.usage
        dates = parse_dates(completion.text)

        step(ExtractionStep.EXTRACTING_LOCATIONS)
        completion = await self.client.complete(prompts.locations_prompt(parsed.title, context))
        usage += completion.usage
        locations = parse_locations(completion.text)

        step(ExtractionStep.FINDING_TOPICS)
        completion = await self.client.complete(
            prompts.related_topics_prompt(parsed.title, parsed.categories, summary)
        )
        usage += completion.usage
        related_topics = parse_topics(completion.text)

        logger.info(
            "Enrichment complete for %s: %d facts, %d dates, %d locations, %d topics",
            parsed.title,
            len(key_facts),
            len(dates),
            len(locations),
            len(related_topics),
        )
        result = EnrichmentResult(
            summary=summary,
            article_type=article_type,
            key_facts=key_facts,
            dates=dates,
            locations=locations,
            related_topics=related_topics,
        )
        return result, usage

    @staticmethod
    def _check_summary_length(summary: str, target: int, original_words: int) -> None:
        words = len(summary.split())
        percent = round(100 * words / original_words) if original_words else 0
        logger.info(
            "Summary quality: %d words (%d%% of original, target %d words)", words, percent, target
        )
        if 0 < words < target * UNDER_TARGET_FRACTION:
            logger.warning(
                "Summary significantly shorter than target: %d words vs %d target", words, target
            )
