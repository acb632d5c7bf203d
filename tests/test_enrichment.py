import logging
import math
from typing import List

import pytest

from wikiextract.errors import AIError, AIErrorKind
from wikiextract.services.llm.enrichment import (
    EnrichmentOrchestrator,
    parse_dates,
    parse_key_facts,
    parse_locations,
    parse_topics,
    summary_band,
)
from wikiextract.services.llm.models import (
    ArticleType,
    Completion,
    DatePrecision,
    EnrichmentResult,
    ExtractionStep,
    LocationType,
    TokenUsage,
)
from wikiextract.services.wiki.models import Infobox, InfoboxField, ParsedDocument, Section


class ScriptedClient:
    """Answers each enrichment prompt by recognising its wording."""

    def __init__(self, summary: str = "A summary of the life of Confucius.") -> None:
        self.summary = summary
        self.prompts: List[str] = []

    async def complete(self, prompt: str, system=None, max_tokens=None) -> Completion:
        self.prompts.append(prompt)
        if prompt.startswith("Create a comprehensive"):
            text = self.summary
        elif prompt.startswith("Classify"):
            text = " Person\n"
        elif prompt.startswith("Extract the most important facts"):
            text = "Born: 551 BCE\nnot a fact line\n- Known for: Analects: sayings\n"
        elif prompt.startswith("Extract important dates"):
            text = "551 BCE | Birth | -551\nbroken line\n479 BCE | Death | -479\n"
        elif prompt.startswith("Extract important locations"):
            text = "Lu state | region | Shandong, China\nQufu | city\nZou | village | Zoucheng\n"
        else:
            text = "\n".join(f"Topic {i}" for i in range(12))
        return Completion(text=text, usage=TokenUsage(100, 10))


class FailingClient:
    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, prompt: str, system=None, max_tokens=None) -> Completion:
        self.calls += 1
        raise AIError(AIErrorKind.SERVER_ERROR, status_code=503)


def make_parsed(word_count: int = 2000, sections: int = 3, content: str = "Text. " * 50) -> ParsedDocument:
    return ParsedDocument(
        title="Confucius",
        display_title="Confucius",
        page_id=5802,
        categories=["Chinese philosophers"],
        infobox=Infobox(type="Infobox person", fields=[InfoboxField("Born", "551 BCE")]),
        tables=[],
        sections=[
            Section(id=f"section_{i}", title=f"Part {i}", level=2, content=content, word_count=50)
            for i in range(sections)
        ],
        see_also=[],
        alternate_names=[],
        first_paragraph="Confucius was a Chinese philosopher of the Spring and Autumn period.",
        word_count=word_count,
    )


def test_summary_band_short_and_long_targets() -> None:
    assert summary_band(100) == (50, 150)
    assert summary_band(1000) == (300, 1200)
    # tiny targets still get a sane band
    assert summary_band(50) == (25, 75)


@pytest.mark.parametrize(
    ("ratio", "expected"),
    [(0.55, 0.55), (0.1, 0.4), (0.95, 0.7), (math.nan, 0.5), (math.inf, 0.5), (None, 0.5)],
)
def test_clamp_ratio(ratio, expected: float) -> None:
    orchestrator = EnrichmentOrchestrator(ScriptedClient())
    assert orchestrator.clamp_ratio(ratio) == pytest.approx(expected)


def test_target_word_count_floor() -> None:
    assert EnrichmentOrchestrator.target_word_count(2000, 0.5) == 1000
    assert EnrichmentOrchestrator.target_word_count(40, 0.5) == 50
    assert EnrichmentOrchestrator.target_word_count(-5, 0.5) == 50


def test_target_word_count_rounds_halves_up() -> None:
    assert EnrichmentOrchestrator.target_word_count(1001, 0.5) == 501
    assert EnrichmentOrchestrator.target_word_count(1003, 0.5) == 502
    assert EnrichmentOrchestrator.target_word_count(999, 0.4) == 400


def test_build_context_tiers() -> None:
    long_content = "x" * 3000
    short = EnrichmentOrchestrator.build_context(make_parsed(2000, 12, long_content))
    assert short.count("## Part") == 12
    assert long_content in short
    assert "## Key Information\nBorn: 551 BCE" in short

    medium = EnrichmentOrchestrator.build_context(make_parsed(5000, 12, long_content))
    assert medium.count("## Part") == 10
    assert "x" * 1501 not in medium and "x" * 1500 in medium

    large = EnrichmentOrchestrator.build_context(make_parsed(20000, 20, long_content))
    assert large.count("## Part") == 15
    assert "x" * 1001 not in large and "x" * 1000 in large


@pytest.mark.asyncio
async def test_enrich_runs_steps_in_order_and_sums_usage() -> None:
    client = ScriptedClient()
    steps: List[ExtractionStep] = []
    result, usage = await EnrichmentOrchestrator(client).enrich(
        make_parsed(), 0.5, on_step=steps.append
    )

    assert steps == [
        ExtractionStep.GENERATING_SUMMARY,
        ExtractionStep.CLASSIFYING,
        ExtractionStep.EXTRACTING_FACTS,
        ExtractionStep.EXTRACTING_DATES,
        ExtractionStep.EXTRACTING_LOCATIONS,
        ExtractionStep.FINDING_TOPICS,
    ]
    assert len(client.prompts) == 6
    assert "Target length: 1000 words" in client.prompts[0]
    assert usage == TokenUsage(600, 60)

    assert result.summary == "A summary of the life of Confucius."
    assert result.article_type is ArticleType.PERSON
    assert [(f.key, f.value) for f in result.key_facts] == [
        ("Born", "551 BCE"),
        ("Known for", "Analects: sayings"),
    ]
    assert [(d.date, d.event, d.year) for d in result.dates] == [
        ("551 BCE", "Birth", -551),
        ("479 BCE", "Death", -479),
    ]
    assert [loc.type for loc in result.locations] == [
        LocationType.REGION,
        LocationType.CITY,
        LocationType.HISTORICAL_NAME,
    ]
    assert result.locations[0].modern_name == "Shandong, China"
    assert result.locations[1].modern_name is None
    assert len(result.related_topics) == 10


@pytest.mark.asyncio
async def test_short_summary_is_logged_but_accepted(caplog: pytest.LogCaptureFixture) -> None:
    client = ScriptedClient(summary=" ".join(["word"] * 200))
    with caplog.at_level(logging.WARNING, logger="wikiextract.services.llm.enrichment"):
        result, _ = await EnrichmentOrchestrator(client).enrich(make_parsed(2000), 0.5)
    assert len(result.summary.split()) == 200
    assert any("significantly shorter" in rec.getMessage() for rec in caplog.records)


@pytest.mark.asyncio
async def test_zero_word_count_returns_fallback_without_calls() -> None:
    client = FailingClient()
    parsed = make_parsed(word_count=0)
    result, usage = await EnrichmentOrchestrator(client).enrich(parsed, 0.5)
    assert client.calls == 0
    assert result == EnrichmentResult.fallback(parsed)
    assert result.summary == parsed.first_paragraph
    assert result.article_type is ArticleType.OTHER
    assert usage == TokenUsage()


@pytest.mark.asyncio
async def test_ai_errors_propagate() -> None:
    with pytest.raises(AIError):
        await EnrichmentOrchestrator(FailingClient()).enrich(make_parsed(), 0.5)


@pytest.mark.asyncio
async def test_empty_summary_is_invalid_response() -> None:
    with pytest.raises(AIError) as excinfo:
        await EnrichmentOrchestrator(ScriptedClient(summary="  \n")).enrich(make_parsed(), 0.5)
    assert excinfo.value.kind is AIErrorKind.INVALID_RESPONSE


def test_line_parsers_skip_malformed_lines() -> None:
    assert parse_key_facts("no colon here\n: empty key\nKey:\n") == []
    dates = parse_dates("1644 | Fall of Ming | 1644\nc. 500 BCE | Teaching | unknown\nonly | two")
    assert [d.year for d in dates] == [1644, None]
    assert all(d.precision is DatePrecision.APPROXIMATE for d in dates)
    assert parse_locations("just a name\n | city") == []
    assert parse_topics("\n\n1. Mencius\n- Laozi\n") == ["Mencius", "Laozi"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("event", ArticleType.EVENT), ("Work.", ArticleType.WORK), ("a philosopher", ArticleType.OTHER)],
)
def test_article_type_parse(raw: str, expected: ArticleType) -> None:
    assert ArticleType.parse(raw) is expected
