"""Span ingestion and overlap resolution."""

from __future__ import annotations
import logging
from typing import Any, Iterable, Mapping

from .types import Category, Span

logger = logging.getLogger(__name__)


def _coerce(raw: Any, text: str | None) -> Span | None:
    if isinstance(raw, Span):
        kind, start, end, value = raw.type, raw.start, raw.end, raw.value
    elif isinstance(raw, Mapping):
        kind, start, end, value = raw.get("type"), raw.get("start"), raw.get("end"), raw.get("value")
    else:
        return None
    try:
        category = Category(str(kind).upper())
    except ValueError:
        return None

    # bool is an int subclass; True/False are never offsets
    if type(start) is not int or type(end) is not int:
        return None
    if not 0 <= start < end:
        return None
    if text is not None:
        if end > len(text):
            return None
        value = text[start:end]
    if not isinstance(value, str) or not value:
        return None
    if isinstance(raw, Span) and category is raw.type and value == raw.value:
        return raw
    return Span(category, start, end, value)


def sanitize_spans(raw_spans: Iterable[Any], text: str | None = None) -> list[Span]:
    """Keep well-formed spans, silently drop the rest.

    Accepts ``Span`` objects or ``{type, start, end, value}`` mappings.  When
    ``text`` is given, offsets must fit inside it and each span's value is
    re-read from the text so values can never disagree with offsets.
    """
    out: list[Span] = []
    dropped = 0
    for raw in raw_spans:
        span = _coerce(raw, text)
        if span is None:
            dropped += 1
            continue
        out.append(span)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed spans")
    return out


def dedupe_spans(spans: Iterable[Span]) -> list[Span]:
    """Drop exact ``(type, start, end)`` repeats, keeping the first one seen."""
    seen: dict[tuple[Category, int, int], Span] = {}
    for span in spans:
        seen.setdefault((span.type, span.start, span.end), span)
    return list(seen.values())


def resolve_overlaps(spans: Iterable[Span]) -> list[Span]:
    """Select a non-overlapping subset of ``spans``.

    Candidates are ranked by priority (desc), then length (desc), then
    input position, and accepted greedily whenever they do not overlap an
    already accepted span.  A rejected span is discarded whole.  The result
    is sorted by start offset.
    """
    ranked = sorted(
        enumerate(spans),
        key=lambda item: (-item[1].priority, -item[1].length, item[0]),
    )
    taken: list[Span] = []
    for _, span in ranked:
        if not any(span.overlaps(t) for t in taken):
            taken.append(span)
    return sorted(taken, key=lambda s: s.start)
