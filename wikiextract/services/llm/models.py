"""Models shared by the completion client and the enrichment orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional

from wikiextract.services.wiki.models import ParsedDocument

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def estimate(cls, input_text: str, output_text: str = "") -> "TokenUsage":
        """Rough pre-flight estimate at four characters per token. Never mix with reported usage."""
        return cls(
            input_tokens=len(input_text) // CHARS_PER_TOKEN,
            output_tokens=len(output_text) // CHARS_PER_TOKEN,
        )


class Completion(NamedTuple):
    text: str
    usage: TokenUsage


class ArticleType(str, Enum):
    PERSON = "person"
    PLACE = "place"
    EVENT = "event"
    CONCEPT = "concept"
    THEORY = "theory"
    ORGANIZATION = "organization"
    OBJECT = "object"
    WORK = "work"
    PERIOD = "period"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str) -> "ArticleType":
        """Map a free-form model answer to a type, defaulting to OTHER."""
        cleaned = raw.strip().strip(".\"'`*").lower()
        for member in cls:
            if member.value == cleaned:
                return member
        return cls.OTHER


class DatePrecision(str, Enum):
    EXACT = "exact"
    YEAR = "year"
    DECADE = "decade"
    CENTURY = "century"
    APPROXIMATE = "approximate"


class LocationType(str, Enum):
    CITY = "city"
    REGION = "region"
    COUNTRY = "country"
    LANDMARK = "landmark"
    HISTORICAL_NAME = "historical_name"

    @classmethod
    def parse(cls, raw: str) -> "LocationType":
        cleaned = raw.strip().lower().replace(" ", "_")
        for member in cls:
            if member.value == cleaned:
                return member
        return cls.HISTORICAL_NAME


@dataclass(frozen=True)
class KeyFact:
    key: str
    value: str


@dataclass(frozen=True)
class DateEvent:
    event: str
    date: str
    year: Optional[int] = None
    precision: DatePrecision = DatePrecision.YEAR


@dataclass(frozen=True)
class Location:
    name: str
    type: LocationType
    modern_name: Optional[str] = None


@dataclass(frozen=True)
class EnrichmentResult:
    summary: str
    article_type: ArticleType = ArticleType.OTHER
    key_facts: List[KeyFact] = field(default_factory=list)
    dates: List[DateEvent] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)
    related_topics: List[str] = field(default_factory=list)

    @classmethod
    def fallback(cls, parsed: ParsedDocument) -> "EnrichmentResult":
        """Non-AI result: first paragraph as summary, everything else defaulted."""
        return cls(summary=parsed.first_paragraph)


class ExtractionStep(str, Enum):
    FETCHING = "fetching"
    PARSING = "parsing"
    GENERATING_SUMMARY = "generating_summary"
    CLASSIFYING = "classifying"
    EXTRACTING_FACTS = "extracting_facts"
    EXTRACTING_DATES = "extracting_dates"
    EXTRACTING_LOCATIONS = "extracting_locations"
    FINDING_TOPICS = "finding_topics"
    COMPLETE = "complete"

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    ExtractionStep.FETCHING: "Fetching article...",
    ExtractionStep.PARSING: "Parsing content...",
    ExtractionStep.GENERATING_SUMMARY: "Generating summary...",
    ExtractionStep.CLASSIFYING: "Classifying article...",
    ExtractionStep.EXTRACTING_FACTS: "Extracting key facts...",
    ExtractionStep.EXTRACTING_DATES: "Extracting dates...",
    ExtractionStep.EXTRACTING_LOCATIONS: "Extracting locations...",
    ExtractionStep.FINDING_TOPICS: "Finding related topics...",
    ExtractionStep.COMPLETE: "Complete",
}
