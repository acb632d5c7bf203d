import json

from wikiextract.services.discovery.json_recovery import (
    extract_articles_by_pattern,
    parse_search_response,
    repair_truncated,
    strip_fences,
)

COMPLETE = (
    '{"estimatedTotal": 120, "reasoning": "Broad topic", "articles": ['
    '{"title": "Ancient Rome", "description": "Roman civilization"}, '
    '{"title": "Roman Republic", "description": "509-27 BC state"}]}'
)


def test_clean_parse() -> None:
    parsed = parse_search_response(COMPLETE)
    assert parsed.estimated_total == 120
    assert parsed.has_more is True
    assert [c.title for c in parsed.candidates] == ["Ancient Rome", "Roman Republic"]
    assert parsed.candidates[1].description == "509-27 BC state"


def test_markdown_fences_are_stripped() -> None:
    fenced = f"```json\n{COMPLETE}\n```"
    assert strip_fences(fenced) == COMPLETE
    assert len(parse_search_response(fenced).candidates) == 2


def test_truncated_mid_array_keeps_every_complete_object() -> None:
    truncated = (
        '{"estimatedTotal": 300, "articles": ['
        '{"title": "Ancient Rome", "description": "Roman civilization"}, '
        '{"title": "Julius Caesar", "description": "Roman general [and] statesman {dictator}"}, '
        '{"title": "Colosseum", "description": "Amphitheatre in Rome"}, '
        '{"title": "Pompeii", "description": "Roman ci'
    )
    parsed = parse_search_response(truncated)
    assert [c.title for c in parsed.candidates] == ["Ancient Rome", "Julius Caesar", "Colosseum"]
    assert parsed.estimated_total == 300


def test_repair_appends_closers_in_order() -> None:
    repaired = repair_truncated('{"a": {"articles": [{"title": "X", "description": "y"}, {"title": "Z')
    assert repaired.endswith('"y"}]}}')
    assert json.loads(repaired) == {"a": {"articles": [{"title": "X", "description": "y"}]}}


def test_regex_fallback_when_json_is_beyond_repair() -> None:
    broken = (
        'Here you go: {"estimatedTotal": 10, "articles": [ '
        '{"title": "Carthage", "description": "Phoenician city"},, '
        '{"title": "Hannibal", "description": "Carthaginian general"} oops ]}'
    )
    parsed = parse_search_response(broken)
    assert [c.title for c in parsed.candidates] == ["Carthage", "Hannibal"]
    assert parsed.estimated_total == 2
    assert parsed.has_more is True


def test_pattern_scan_unescapes_strings() -> None:
    found = extract_articles_by_pattern('{"title": "The \\"Great\\" Fire", "description": "Rome, 64 AD"}')
    assert found[0].title == 'The "Great" Fire'


def test_no_json_object() -> None:
    parsed = parse_search_response("I could not find anything.")
    assert parsed.candidates == []
    assert parsed.estimated_total == 0
    assert parsed.has_more is False


def test_continuation_shape_and_blank_titles() -> None:
    parsed = parse_search_response(
        '{"articles": [{"title": "  "}, {"title": "Nero"}, "junk"], "hasMore": false}'
    )
    assert [c.title for c in parsed.candidates] == ["Nero"]
    assert parsed.candidates[0].description == ""
    assert parsed.has_more is False
