"""Prompt builders for article enrichment."""

from __future__ import annotations

from typing import Optional, Sequence

from wikiextract.services.wiki.models import Infobox

SUMMARY_CONTEXT_CHARS = 15000
EXCERPT_CHARS = 3000
SUMMARY_EXCERPT_CHARS = 500
PROMPT_CATEGORIES = 5
PROMPT_INFOBOX_FIELDS = 15


def _categories(categories: Sequence[str]) -> str:
    return ", ".join(list(categories)[:PROMPT_CATEGORIES])


def summary_prompt(title: str, context: str, target: int, minimum: int, maximum: int) -> str:
    return f"""Create a comprehensive, detailed summary of the Wikipedia article about "{title}".

LENGTH REQUIREMENTS:
- Target length: {target} words
- Minimum acceptable: {minimum} words
- Maximum acceptable: {maximum} words
- The summary MUST be between {minimum} and {maximum} words

CONTENT REQUIREMENTS:
- Preserve important details, context and nuance
- Include key examples and supporting information
- Cover all major sections and themes, including historical background
- Do not oversimplify complex concepts
- Reduce redundancy but keep substance

STYLE:
- Clear, accessible academic language in an encyclopedic tone
- Flowing paragraphs, no bullet points or section headings

Article content:
{context[:SUMMARY_CONTEXT_CHARS]}

Provide only the summary text, no preamble or meta-commentary."""


def classification_prompt(title: str, summary: str, categories: Sequence[str]) -> str:
    return f"""Classify this Wikipedia article into exactly ONE of these categories:
- person (biography of a person)
- place (geographic location, landmark)
- event (historical event, battle, disaster)
- concept (abstract idea, philosophy)
- theory (scientific or philosophical theory)
- organization (company, institution, group)
- work (book, film, artwork, music)
- object (physical thing, technology, invention)
- period (historical period, era)
- other (if none of the above fit)

Article: "{title}"
Categories: {_categories(categories)}
Summary excerpt: {summary[:SUMMARY_EXCERPT_CHARS]}

Respond with ONLY the category name, nothing else."""


def key_facts_prompt(title: str, context: str, infobox: Optional[Infobox]) -> str:
    lines = [
        f'Extract the most important facts about "{title}" as key-value pairs.',
        "",
        "Format each fact as:",
        "Key: Value",
        "",
        "Example:",
        "Born: 551 BCE",
        "Occupation: Philosopher",
        "Known for: Founding Confucianism",
        "",
    ]
    if infobox is not None:
        lines.append("Infobox data:")
        lines.extend(f"{item.key}: {item.value}" for item in infobox.fields[:PROMPT_INFOBOX_FIELDS])
        lines.append("")
    lines.extend(
        [
            "Article excerpt:",
            context[:EXCERPT_CHARS],
            "",
            "Provide only the key facts in the format shown, one per line.",
        ]
    )
    return "\n".join(lines)


def dates_prompt(title: str, context: str) -> str:
    return f"""Extract important dates and events related to "{title}".

Format each as:
Date | Event | Year

Example:
551 BCE | Birth | -551
479 BCE | Death | -479

Article excerpt:
{context[:EXCERPT_CHARS]}

Provide only the dates in the format shown, one per line. Use negative years for BCE dates."""


def locations_prompt(title: str, context: str) -> str:
    return f"""Extract important locations related to "{title}".

Format each as:
Name | Type | Modern Name (if different)

Types: city, region, country, landmark, historical_name

Example:
Lu state | region | Shandong, China
Qufu | city | Qufu

Article excerpt:
{context[:EXCERPT_CHARS]}

Provide only the locations in the format shown, one per line."""


def related_topics_prompt(title: str, categories: Sequence[str], summary: str) -> str:
    return f"""Based on this article about "{title}", suggest 5-10 related topics that readers might be interested in.

Categories: {_categories(categories)}
Summary: {summary[:SUMMARY_EXCERPT_CHARS]}

Provide only the topic names, one per line, no explanations."""
