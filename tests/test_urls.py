import pytest

from wikiextract.errors import ValidationError
from wikiextract.urls import article_url, parse_source_list, resolve_source, title_from_url


@pytest.mark.parametrize(
    ("source", "title", "url"),
    [
        ("Confucius", "Confucius", "https://en.wikipedia.org/wiki/Confucius"),
        ("  Ancient Rome ", "Ancient Rome", "https://en.wikipedia.org/wiki/Ancient_Rome"),
        (
            "https://en.wikipedia.org/wiki/Ancient_Rome",
            "Ancient Rome",
            "https://en.wikipedia.org/wiki/Ancient_Rome",
        ),
        (
            "https://en.m.wikipedia.org/wiki/Confucius#Life",
            "Confucius",
            "https://en.wikipedia.org/wiki/Confucius",
        ),
        (
            "en.wikipedia.org/wiki/Caf%C3%A9",
            "Café",
            "https://en.wikipedia.org/wiki/Caf%C3%A9",
        ),
    ],
)
def test_resolve_source(source: str, title: str, url: str) -> None:
    resolved = resolve_source(source)
    assert resolved.title == title
    assert resolved.url == url


@pytest.mark.parametrize(
    "source",
    [
        "",
        "   ",
        "https://example.com/wiki/Confucius",
        "https://en.wikipedia.org/w/index.php?title=Confucius",
        "https://en.wikipedia.org/wiki/",
        "some/path",
    ],
)
def test_resolve_source_rejects(source: str) -> None:
    with pytest.raises(ValidationError):
        resolve_source(source)


def test_article_url_and_title_from_url() -> None:
    assert article_url("Julius Caesar") == "https://en.wikipedia.org/wiki/Julius_Caesar"
    assert title_from_url("https://en.wikipedia.org/wiki/Julius_Caesar") == "Julius Caesar"


def test_parse_source_list() -> None:
    text = "\n".join(
        [
            "# roman history",
            "Ancient Rome",
            "",
            "https://en.wikipedia.org/wiki/Ancient_Rome",
            "https://example.com/wiki/Nope",
            "Nero",
        ]
    )
    valid, invalid = parse_source_list(text)
    assert [source.title for source in valid] == ["Ancient Rome", "Nero"]
    assert invalid == ["https://example.com/wiki/Nope"]
