"""Token pricing and pre-run cost estimates."""

from __future__ import annotations

from dataclasses import dataclass

from wikiextract.services.llm.models import TokenUsage

PROMPT_OVERHEAD_TOKENS = 2000
INPUT_TOKENS_PER_WORD = 1.3
OUTPUT_TOKENS_PER_WORD = 0.15


@dataclass(frozen=True)
class Pricing:
    """USD per one million tokens."""

    input_per_million: float = 3.00
    output_per_million: float = 15.00


DEFAULT_PRICING = Pricing()


def calculate_cost(usage: TokenUsage, pricing: Pricing = DEFAULT_PRICING) -> float:
    input_cost = usage.input_tokens / 1_000_000 * pricing.input_per_million
    output_cost = usage.output_tokens / 1_000_000 * pricing.output_per_million
    return round(input_cost + output_cost, 6)


def estimate_extraction_usage(word_count: int, ai_enabled: bool = True) -> TokenUsage:
    """Rough usage of one enriched extraction, for previews before any call is made."""
    if not ai_enabled or word_count <= 0:
        return TokenUsage()
    return TokenUsage(
        input_tokens=int(word_count * INPUT_TOKENS_PER_WORD) + PROMPT_OVERHEAD_TOKENS,
        output_tokens=int(word_count * OUTPUT_TOKENS_PER_WORD),
    )


def format_cost(cost: float) -> str:
    if cost < 0.001:
        return "<$0.001"
    return f"${cost:.4f}"
