"""Tests for span sanitizing and overlap resolution."""

from safemask.resolver import dedupe_spans, resolve_overlaps, sanitize_spans
from safemask.types import Category, Span


def S(kind, start, end, value=None):
    return Span(Category(kind), start, end, value or "x" * (end - start))


# ── Overlap resolution ───────────────────────────────────────────────

def test_priority_beats_length():
    key = S("API_KEY", 0, 20)
    other = S("OTHER", 0, 40)
    assert resolve_overlaps([other, key]) == [key]


def test_length_breaks_priority_ties():
    email = S("EMAIL", 0, 10)
    phone = S("PHONE", 5, 20)
    assert resolve_overlaps([email, phone]) == [phone]


def test_input_order_breaks_full_ties():
    a = S("EMAIL", 0, 10, "a" * 10)
    b = S("PHONE", 5, 15, "b" * 10)
    assert resolve_overlaps([a, b]) == [a]
    assert resolve_overlaps([b, a]) == [b]


def test_loser_is_dropped_whole():
    iban = S("IBAN", 10, 30)
    name = S("FULL_NAME", 0, 15)
    after = S("FULL_NAME", 30, 40)
    assert resolve_overlaps([name, iban, after]) == [iban, after]


def test_result_sorted_and_disjoint():
    spans = [
        S("OTHER", 50, 90),
        S("EMAIL", 0, 12),
        S("ADDRESS", 5, 30),
        S("CREDIT_CARD", 60, 79),
        S("FULL_NAME", 31, 40),
    ]
    out = resolve_overlaps(spans)
    assert [s.start for s in out] == sorted(s.start for s in out)
    for prev, nxt in zip(out, out[1:]):
        assert prev.end <= nxt.start
    assert {s.type for s in out} == {Category.EMAIL, Category.FULL_NAME, Category.CREDIT_CARD}


def test_resolution_is_idempotent():
    spans = [S("EMAIL", 0, 12), S("PHONE", 3, 20), S("OTHER", 18, 60), S("TOKEN", 40, 45)]
    once = resolve_overlaps(spans)
    assert resolve_overlaps(once) == once


def test_adjacent_spans_both_kept():
    a, b = S("EMAIL", 0, 5), S("PHONE", 5, 10)
    assert resolve_overlaps([a, b]) == [a, b]


def test_empty():
    assert resolve_overlaps([]) == []


# ── Sanitizing ───────────────────────────────────────────────────────

def test_sanitize_drops_malformed():
    text = "hello world"
    raw = [
        {"type": "EMAIL", "start": 0, "end": 5, "value": "hello"},
        {"type": "EMAIL", "start": True, "end": 5, "value": "hello"},
        {"type": "EMAIL", "start": -1, "end": 5, "value": "hello"},
        {"type": "EMAIL", "start": 5, "end": 5, "value": ""},
        {"type": "EMAIL", "start": 6, "end": 99, "value": "world"},
        {"type": "NOPE", "start": 0, "end": 5, "value": "hello"},
        {"type": "EMAIL", "start": "0", "end": 5, "value": "hello"},
        "not a span",
    ]
    assert sanitize_spans(raw, text) == [Span(Category.EMAIL, 0, 5, "hello")]


def test_sanitize_rereads_value_and_accepts_lowercase_type():
    out = sanitize_spans([{"type": "full_name", "start": 6, "end": 11, "value": "bogus"}], "hello world")
    assert out == [Span(Category.FULL_NAME, 6, 11, "world")]


def test_sanitize_without_text_requires_value():
    assert sanitize_spans([{"type": "EMAIL", "start": 0, "end": 3}]) == []
    assert sanitize_spans([{"type": "EMAIL", "start": 0, "end": 3, "value": "a@b"}]) == [
        Span(Category.EMAIL, 0, 3, "a@b")
    ]


def test_dedupe_keeps_first():
    a = Span(Category.EMAIL, 0, 3, "abc")
    b = Span(Category.EMAIL, 0, 3, "xyz")
    c = Span(Category.PHONE, 0, 3, "abc")
    assert dedupe_spans([a, b, c]) == [a, c]
