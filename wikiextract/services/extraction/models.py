"""The immutable extraction artifact."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from wikiextract.services.llm.models import (
    ArticleType,
    DateEvent,
    KeyFact,
    Location,
    TokenUsage,
)
from wikiextract.services.wiki.models import Infobox, Link, Section, Table

EXTRACTOR_VERSION = "0.1.0"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


@dataclass(frozen=True)
class ExtractionMetadata:
    source_url: str
    page_id: int
    ai_enhanced: bool
    summary_ratio: float
    tokens_used: Optional[TokenUsage] = None
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extractor_version: str = EXTRACTOR_VERSION


@dataclass(frozen=True)
class Extraction:
    """Self-contained result of one article extraction. Edit via ``replace``."""

    metadata: ExtractionMetadata
    title: str
    summary: str
    article_type: ArticleType = ArticleType.OTHER
    alternate_names: List[str] = field(default_factory=list)
    summary_word_count: int = 0
    original_word_count: int = 0
    categories: List[str] = field(default_factory=list)
    infobox: Optional[Infobox] = None
    tables: List[Table] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    key_facts: List[KeyFact] = field(default_factory=list)
    dates: List[DateEvent] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)
    related_topics: List[str] = field(default_factory=list)
    see_also: List[Link] = field(default_factory=list)

    def replace(self, **changes: Any) -> "Extraction":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping grouped the way exports present it."""
        return {
            "metadata": _jsonable(self.metadata),
            "article": {
                "title": self.title,
                "alternate_names": list(self.alternate_names),
                "summary": self.summary,
                "type": self.article_type.value,
                "word_count": self.summary_word_count,
                "original_word_count": self.original_word_count,
            },
            "temporal_context": {"dates": _jsonable(self.dates)},
            "geographic_context": {"locations": _jsonable(self.locations)},
            "structured_content": {
                "infobox": _jsonable(self.infobox),
                "tables": _jsonable(self.tables),
                "sections": _jsonable(self.sections),
            },
            "classification": {
                "categories": list(self.categories),
                "key_facts": _jsonable(self.key_facts),
                "related_topics": list(self.related_topics),
            },
            "references": {"see_also": _jsonable(self.see_also)},
        }
