"""Discovery candidates, validated results and search session bookkeeping."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from wikiextract.costs import DEFAULT_PRICING, Pricing, calculate_cost
from wikiextract.services.llm.models import TokenUsage
from wikiextract.urls import article_url

DEFAULT_BATCH_SIZE = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SearchStep(str, Enum):
    PREPARING_QUERY = "preparing_query"
    CONTACTING_MODEL = "contacting_model"
    PARSING_RESPONSE = "parsing_response"
    VALIDATING = "validating"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SearchCandidate:
    title: str
    description: str = ""


@dataclass
class SearchResult:
    id: str
    title: str
    url: str
    description: str = ""
    # the only field callers are expected to change
    selected: bool = False

    @classmethod
    def from_title(cls, title: str, description: str = "") -> "SearchResult":
        return cls(id=str(uuid.uuid4()), title=title, url=article_url(title), description=description)


@dataclass(frozen=True)
class SearchBatch:
    candidates: List[SearchResult]
    estimated_total: int
    input_tokens: int
    output_tokens: int

    @property
    def usage(self) -> TokenUsage:
        return TokenUsage(self.input_tokens, self.output_tokens)


@dataclass(frozen=True)
class CostEntry:
    label: str
    input_tokens: int
    output_tokens: int
    timestamp: datetime = field(default_factory=_now)


class SearchCostTracker:
    """Append-only record of model calls made for one search session."""

    def __init__(self, pricing: Pricing = DEFAULT_PRICING) -> None:
        self.pricing = pricing
        self.started_at = _now()
        self._entries: List[CostEntry] = []
        self._lock = threading.Lock()

    @property
    def entries(self) -> List[CostEntry]:
        with self._lock:
            return list(self._entries)

    def add(self, label: str, usage: TokenUsage) -> CostEntry:
        entry = CostEntry(label, usage.input_tokens, usage.output_tokens)
        with self._lock:
            self._entries.append(entry)
        return entry

    def add_initial_search(self, usage: TokenUsage) -> CostEntry:
        return self.add("Initial search", usage)

    def add_load_more(self, batch_number: int, usage: TokenUsage) -> CostEntry:
        return self.add(f"Load more (x{batch_number})", usage)

    @property
    def request_count(self) -> int:
        return len(self.entries)

    @property
    def usage(self) -> TokenUsage:
        total = TokenUsage()
        for entry in self.entries:
            total += TokenUsage(entry.input_tokens, entry.output_tokens)
        return total

    @property
    def total_cost(self) -> float:
        return sum(
            calculate_cost(TokenUsage(entry.input_tokens, entry.output_tokens), self.pricing)
            for entry in self.entries
        )


@dataclass
class SearchSession:
    """
    Accumulated results for one discovery query.

    ``loaded_count`` always equals ``len(results)``. The session is fully
    loaded once a continuation brings nothing new or the estimate is reached.
    """

    query: str
    results: List[SearchResult] = field(default_factory=list)
    estimated_total_count: int = 0
    loaded_count: int = 0
    is_fully_loaded: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    cost_tracker: SearchCostTracker = field(default_factory=SearchCostTracker)
    timestamp: datetime = field(default_factory=_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_batch(
        cls,
        query: str,
        batch: SearchBatch,
        pricing: Optional[Pricing] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> "SearchSession":
        tracker = SearchCostTracker(pricing or DEFAULT_PRICING)
        tracker.add_initial_search(batch.usage)
        results = list(batch.candidates)
        estimated = max(batch.estimated_total, len(results))
        return cls(
            query=query,
            results=results,
            estimated_total_count=estimated,
            loaded_count=len(results),
            is_fully_loaded=len(results) >= estimated or estimated == 0,
            batch_size=max(1, batch_size),
            cost_tracker=tracker,
        )

    @property
    def already_loaded_titles(self) -> List[str]:
        return [result.title for result in self.results]

    @property
    def next_batch_number(self) -> int:
        return self.loaded_count // self.batch_size

    @property
    def selected_results(self) -> List[SearchResult]:
        return [result for result in self.results if result.selected]

    def apply_continuation(self, batch: SearchBatch, batch_number: int) -> int:
        """Merge a continuation batch, skipping titles already present. Returns how many were added."""
        self.cost_tracker.add_load_more(batch_number, batch.usage)
        seen = {result.title.lower() for result in self.results}
        added = 0
        for candidate in batch.candidates:
            key = candidate.title.lower()
            if key in seen:
                continue
            seen.add(key)
            self.results.append(candidate)
            added += 1
        self.loaded_count = len(self.results)
        if added == 0 or self.loaded_count >= self.estimated_total_count:
            self.is_fully_loaded = True
        return added
