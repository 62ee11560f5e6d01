from __future__ import annotations

import json

import pytest

from offer_checker.schemas import VERDICT_CATEGORIES
from offer_checker.verdict_parser import VerdictParser

SENTINEL = {"verdict": "Unknown", "reasoning": "invalid response", "suggestions": []}


@pytest.mark.parametrize(
    "payload",
    [
        {"verdict": "Fair", "reasoning": "matches market rates", "suggestions": []},
        {"verdict": "Overpriced", "reasoning": "cement 40% above reference", "suggestions": ["renegotiate"]},
        {
            "verdict": "Suspicious",
            "reasoning": "duration too short for scope",
            "suggestions": ["ask for schedule"],
            "items": [{"item": "rebar", "vendor_price": 10, "reference_price": 7, "difference_percent": 42.8}],
        },
    ],
)
def test_valid_verdict_is_returned_unchanged(payload):
    parser = VerdictParser()
    assert parser.parse(json.dumps(payload)) == payload
    assert parser.stats() == {"parsed": 1, "parse_fallbacks": 0}


def test_missing_suggestions_is_still_valid_and_untouched():
    parser = VerdictParser()
    result = parser.parse('{"verdict": "Fair", "reasoning": "ok"}')
    assert result == {"verdict": "Fair", "reasoning": "ok"}


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        None,
        "not json at all",
        "{\"verdict\": \"Fair\", ",
        "[1, 2, 3]",
        "\"Fair\"",
        '{"verdict": "Great", "reasoning": "x", "suggestions": []}',
        '{"reasoning": "no verdict"}',
        '{"verdict": "Fair", "reasoning": "x", "suggestions": "not a list"}',
    ],
)
def test_anything_else_becomes_unknown_sentinel(raw):
    parser = VerdictParser()
    assert parser.parse(raw) == SENTINEL
    assert parser.fallback_count == 1


def test_sentinel_is_a_fresh_object_each_time():
    parser = VerdictParser()
    first = parser.parse("garbage")
    first["suggestions"].append("mutated")
    assert parser.parse("garbage")["suggestions"] == []
    assert parser.fallback_count == 2


def test_markdown_fenced_json_is_accepted():
    parser = VerdictParser()
    raw = '```json\n{"verdict": "Overpriced", "reasoning": "too high", "suggestions": []}\n```'
    result = parser.parse(raw)
    assert result["verdict"] == "Overpriced"
    assert parser.fallback_count == 0


def test_sentinel_category_is_outside_closed_set():
    assert "Unknown" not in VERDICT_CATEGORIES
    assert set(VERDICT_CATEGORIES) == {"Fair", "Overpriced", "Suspicious"}


def test_reset_clears_counters():
    parser = VerdictParser()
    parser.parse("bad")
    parser.reset()
    assert parser.stats() == {"parsed": 0, "parse_fallbacks": 0}


def test_deeply_nested_reply_falls_back_instead_of_raising():
    parser = VerdictParser()
    assert parser.parse("[" * 200000) == SENTINEL
    assert parser.fallback_count == 1
