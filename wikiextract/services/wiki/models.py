"""Typed models for fetched and parsed Wikipedia articles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class RawDocument:
    title: str
    page_id: int
    display_title: str
    markup: str
    categories: List[str]
    word_count: int


@dataclass(frozen=True)
class InfoboxField:
    key: str
    value: str


@dataclass(frozen=True)
class Infobox:
    type: Optional[str]
    fields: List[InfoboxField]

    def get(self, key: str) -> Optional[str]:
        """Return the first value whose key matches case-insensitively."""
        wanted = key.lower()
        for item in self.fields:
            if item.key.lower() == wanted:
                return item.value
        return None


@dataclass(frozen=True)
class Table:
    id: str
    title: str
    headers: List[str]
    rows: List[List[str]]
    row_count: int
    truncated: bool = False


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    level: int
    content: str
    word_count: int
    subsections: List["Section"] = field(default_factory=list)


@dataclass(frozen=True)
class Link:
    title: str
    url: str


@dataclass(frozen=True)
class ParsedDocument:
    title: str
    display_title: str
    page_id: int
    categories: List[str]
    infobox: Optional[Infobox]
    tables: List[Table]
    sections: List[Section]
    see_also: List[Link]
    alternate_names: List[str]
    first_paragraph: str
    word_count: int


@dataclass(frozen=True)
class ArticlePreview:
    title: str
    extract: str
    categories: List[str]
    thumbnail: Optional[str]
    page_url: str

    @property
    def display_categories(self) -> List[str]:
        return self.categories[:5]

    @property
    def short_extract(self) -> str:
        """Extract trimmed to 300 characters, cut back to the last full sentence."""
        if len(self.extract) <= 300:
            return self.extract
        truncated = self.extract[:300]
        last_period = truncated.rfind(".")
        if last_period >= 0:
            return truncated[: last_period + 1]
        return truncated + "..."
