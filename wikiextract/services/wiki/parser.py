"""Parser turning Wikipedia article HTML into a structured document."""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from wikiextract.errors import ParseError, ParseReason
from wikiextract.services.wiki.cleaner import TAG_PATTERN, clean_text, word_count
from wikiextract.services.wiki.models import (
    Infobox,
    InfoboxField,
    Link,
    ParsedDocument,
    RawDocument,
    Section,
    Table,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TABLE_ROWS = 500
MIN_PARAGRAPH_CHARS = 30
MIN_FIRST_PARAGRAPH_CHARS = 50
MAX_ALTERNATE_NAME_CHARS = 100
WIKI_BASE_URL = "https://en.wikipedia.org"

NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    ".mw-editsection",
    ".reference",
    "sup.reference",
    ".noprint",
    ".mw-empty-elt",
    "#coordinates",
    ".sistersitebox",
    ".navbox",
    ".vertical-navbox",
    ".authority-control",
    ".mbox-small",
    ".ambox",
    ".tmbox",
    ".ombox",
    ".hatnote",
]
GENERIC_INFOBOX_CLASSES = {"infobox", "vcard"}
NON_DATA_TABLE_CLASSES = {"infobox", "navbox", "vertical-navbox", "sidebar"}
BOILERPLATE_HEADINGS = {
    "see also",
    "references",
    "external links",
    "notes",
    "further reading",
    "bibliography",
    "sources",
    "footnotes",
    "contents",
    "navigation menu",
}
ALTERNATE_NAME_KEYS = [
    "native name",
    "other names",
    "also known as",
    "chinese",
    "japanese",
    "korean",
    "sanskrit",
    "born",
    "birth name",
]
NAME_SPLIT_PATTERN = re.compile(r"[,;]")


def _text(node: Tag) -> str:
    return clean_text(node.get_text(separator=" ", strip=True))


def _sanitize(soup: BeautifulSoup) -> None:
    # extract() rather than decompose(): matches can be nested inside each other
    for node in soup.select(", ".join(NOISE_SELECTORS)):
        node.extract()


def _content_root(soup: BeautifulSoup) -> Tag:
    root = soup.select_one("div.mw-parser-output")
    if root is None:
        logger.debug("No mw-parser-output container, using the whole document")
        return soup.body or soup
    return root


def parse_infobox(soup: BeautifulSoup) -> Optional[Infobox]:
    """Read key/value rows from the first infobox panel."""
    panel = soup.select_one("table.infobox")
    if panel is None:
        return None

    classes = [str(cls) for cls in panel.get("class", [])]
    aux = [cls for cls in classes if cls not in GENERIC_INFOBOX_CLASSES]
    box_type = f"Infobox {aux[0]}" if aux else None

    fields: List[InfoboxField] = []
    for row in panel.find_all("tr"):
        header = row.find("th")
        cell = row.find("td")
        if header is None or cell is None:
            continue
        key = _text(header)
        value = _text(cell)
        if key and value:
            fields.append(InfoboxField(key=key, value=value))

    if not fields:
        return None
    return Infobox(type=box_type, fields=fields)


def _is_data_table(table: Tag) -> bool:
    classes = {str(cls) for cls in table.get("class", [])}
    if classes & NON_DATA_TABLE_CLASSES:
        return False
    for parent in table.find_parents("table"):
        parent_classes = {str(cls) for cls in parent.get("class", [])}
        if "infobox" in parent_classes:
            return False
    return True


def _own_rows(table: Tag) -> List[Tag]:
    return [row for row in table.find_all("tr") if row.find_parent("table") is table]


def _split_header_rows(table: Tag, rows: List[Tag]) -> Tuple[List[str], List[Tag]]:
    """Headers plus the rows left over as data, skipping every row of the table's own thead."""
    thead = table.find("thead")
    if thead is not None and thead.find_parent("table") is table:
        headers = [_text(th) for th in thead.find_all("th")]
        if headers:
            return headers, [row for row in rows if row.find_parent("thead") is not thead]
    if rows:
        headers = [_text(th) for th in rows[0].find_all("th", recursive=False)]
        if headers:
            return headers, rows[1:]
    return [], rows


def parse_tables(soup: BeautifulSoup, max_rows: int = DEFAULT_MAX_TABLE_ROWS) -> List[Table]:
    """Collect data tables, skipping the infobox and navigation tables."""
    tables: List[Table] = []
    for element in soup.find_all("table"):
        if not _is_data_table(element):
            continue

        rows = _own_rows(element)
        headers, data_rows = _split_header_rows(element, rows)

        values: List[List[str]] = []
        for row in data_rows:
            cells = [_text(cell) for cell in row.find_all(["td", "th"], recursive=False)]
            if cells and any(cells):
                values.append(cells)
        if not values:
            continue

        index = len(tables) + 1
        caption = element.find("caption")
        caption_text = _text(caption) if caption is not None else ""
        truncated = len(values) > max_rows
        tables.append(
            Table(
                id=f"table_{index}",
                title=caption_text or f"Table {index}",
                headers=headers,
                rows=values[:max_rows] if truncated else values,
                row_count=len(values),
                truncated=truncated,
            )
        )
        logger.debug(
            "Table %d: %r - %d headers, %d rows", index, caption_text, len(headers), len(values)
        )
    return tables


def _is_boilerplate(title: str) -> bool:
    return title.strip().lower() in BOILERPLATE_HEADINGS


def _make_section(index: int, title: str, level: int, paragraphs: List[str]) -> Section:
    content = "\n\n".join(paragraphs)
    return Section(
        id=f"section_{index}",
        title=title,
        level=level,
        content=content,
        word_count=word_count(content),
    )


def collect_paragraphs(root: Tag) -> List[str]:
    """All substantive paragraphs under the content root, in document order."""
    paragraphs = []
    for node in root.find_all("p"):
        text = _text(node)
        if len(text) > MIN_PARAGRAPH_CHARS:
            paragraphs.append(text)
    return paragraphs


def parse_sections(soup: BeautifulSoup, root: Tag) -> List[Section]:
    """
    Split paragraphs into sections.

    Paragraphs are dealt out evenly over the h2/h3 headings in document order
    (``max(1, paragraphs // headings)`` each) and the remainder is appended to
    the last emitted section. Heading scope in the DOM is not consulted, so the
    output only depends on paragraph and heading counts.
    """
    paragraphs = collect_paragraphs(root)
    headings = soup.find_all(["h2", "h3"])
    logger.debug("Found %d paragraphs and %d headings", len(paragraphs), len(headings))

    if not paragraphs:
        return []
    if not headings:
        return [_make_section(0, "Content", 2, paragraphs)]

    per_section = max(1, len(paragraphs) // len(headings))
    sections: List[Section] = []
    cursor = 0
    for heading in headings:
        title = _text(heading)
        if _is_boilerplate(title):
            continue
        chunk = paragraphs[cursor : cursor + per_section]
        cursor += len(chunk)
        if chunk:
            sections.append(_make_section(len(sections), title, int(heading.name[1]), chunk))

    remaining = paragraphs[cursor:]
    if remaining:
        if sections:
            last = sections[-1]
            merged = last.content.split("\n\n") + remaining
            sections[-1] = _make_section(len(sections) - 1, last.title, last.level, merged)
        else:
            sections.append(_make_section(0, "Content", 2, remaining))
    return sections


def _iter_after_heading(heading: Tag) -> Iterator[Tag]:
    # newer skins wrap headings: <div class="mw-heading"><h2>..</h2></div>
    anchor = heading
    parent = heading.parent
    if isinstance(parent, Tag) and "mw-heading" in (parent.get("class") or []):
        anchor = parent
    for sibling in anchor.find_next_siblings():
        if sibling.name in {"h2", "h3"}:
            return
        if "mw-heading" in (sibling.get("class") or []):
            return
        yield sibling


def parse_see_also(soup: BeautifulSoup, base_url: str = WIKI_BASE_URL) -> List[Link]:
    """Links from the first list under the "See also" heading."""
    heading = None
    for candidate in soup.find_all(["h2", "h3"]):
        if _text(candidate).lower() == "see also":
            heading = candidate
            break
    if heading is None:
        return []

    for element in _iter_after_heading(heading):
        listing = element if element.name == "ul" else element.find("ul")
        if listing is None:
            continue
        links: List[Link] = []
        for anchor in listing.select("li a[href^='/wiki/']"):
            href = str(anchor.get("href", ""))
            if ":" in href:
                continue
            links.append(Link(title=_text(anchor), url=f"{base_url.rstrip('/')}{href}"))
        return links
    return []


def extract_first_paragraph(root: Tag) -> str:
    for child in root.find_all("p", recursive=False):
        text = _text(child)
        if len(text) > MIN_FIRST_PARAGRAPH_CHARS:
            return text
    return ""


def extract_alternate_names(infobox: Optional[Infobox]) -> List[str]:
    if infobox is None:
        return []
    names: List[str] = []
    for item in infobox.fields:
        key = item.key.lower()
        if not any(name_key in key for name_key in ALTERNATE_NAME_KEYS):
            continue
        for fragment in NAME_SPLIT_PATTERN.split(item.value):
            fragment = fragment.strip()
            if fragment and len(fragment) < MAX_ALTERNATE_NAME_CHARS and fragment not in names:
                names.append(fragment)
    return names


def parse_document(
    raw: RawDocument,
    max_table_rows: int = DEFAULT_MAX_TABLE_ROWS,
    base_url: str = WIKI_BASE_URL,
) -> ParsedDocument:
    """Parse a fetched article into a ParsedDocument."""
    if not raw.markup or not raw.markup.strip():
        raise ParseError(ParseReason.MISSING_CONTENT, raw.title)

    if not TAG_PATTERN.search(raw.markup):
        raise ParseError(ParseReason.INVALID_MARKUP, raw.title)
    soup = BeautifulSoup(raw.markup, "lxml")

    _sanitize(soup)
    root = _content_root(soup)

    infobox = parse_infobox(soup)
    tables = parse_tables(soup, max_rows=max_table_rows)
    sections = parse_sections(soup, root)
    see_also = parse_see_also(soup, base_url=base_url)
    first_paragraph = extract_first_paragraph(root)
    alternate_names = extract_alternate_names(infobox)

    has_prose = bool(sections) or bool(first_paragraph)
    logger.info(
        "Parsed %s: %d tables, %d sections, %d see-also links",
        raw.title,
        len(tables),
        len(sections),
        len(see_also),
    )

    return ParsedDocument(
        title=raw.title,
        display_title=raw.display_title,
        page_id=raw.page_id,
        categories=list(raw.categories),
        infobox=infobox,
        tables=tables,
        sections=sections,
        see_also=see_also,
        alternate_names=alternate_names,
        first_paragraph=first_paragraph,
        word_count=max(raw.word_count, 0) if has_prose else 0,
    )
