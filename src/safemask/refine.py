"""Layer 2 — optional refinement collaborators.

A refiner (an LLM prompt, an NER model, …) proposes extra spans for one
category over one bounded chunk of text.  Calls run concurrently under a
single overall timeout; whatever finishes in time is merged, failures and
stragglers are dropped, and the baseline detector output is always kept.
"""

from __future__ import annotations
import json
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Iterable, Protocol

from .resolver import sanitize_spans
from .types import Category, Span

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 6000


class Refiner(Protocol):
    def refine(self, category: Category, text: str, baseline: list[Span]) -> Any:
        """Return extra spans for ``category`` in chunk-local offsets.

        Accepted shapes: a JSON string or dict ``{"matches": [...]}``, or a
        list of ``{start, end, value}`` mappings.
        """
        ...


def chunk_text(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[tuple[int, str]]:
    """Split text into ``(absolute_start, chunk)`` pieces of at most ``size``."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [(i, text[i:i + size]) for i in range(0, len(text), size)]


def _loads_lenient(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        pass
    first, last = raw.find("{"), raw.rfind("}")
    if 0 <= first < last:
        try:
            return json.loads(raw[first:last + 1])
        except ValueError:
            pass
    return None


def parse_refinement(response: Any) -> list[dict[str, Any]]:
    """Normalize a refiner response to a list of raw span mappings.

    Anything unparseable means "no extra spans", never an error.
    """
    if isinstance(response, (bytes, bytearray)):
        response = response.decode("utf-8", errors="replace")
    if isinstance(response, str):
        response = _loads_lenient(response)
    if isinstance(response, dict):
        response = response.get("matches")
    if not isinstance(response, list):
        return []
    return [item for item in response if isinstance(item, dict)]


def refine_detections(
    text: str,
    baseline: list[Span],
    refiner: Refiner,
    *,
    categories: Iterable[Category] | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: float | None = None,
    max_workers: int = 4,
) -> list[Span]:
    """Return ``baseline`` plus whatever the refiner found in time.

    One job per (category, chunk).  ``timeout`` bounds the whole pass; jobs
    still pending when it expires are cancelled and their results ignored.
    """
    cats = list(categories) if categories is not None else list(Category)
    chunks = chunk_text(text, chunk_size) if text else []
    if not cats or not chunks:
        return list(baseline)

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="safemask-refine")
    jobs = {}
    try:
        for offset, chunk in chunks:
            local = [
                s.shifted(-offset) for s in baseline
                if s.start >= offset and s.end <= offset + len(chunk)
            ]
            for category in cats:
                future = executor.submit(refiner.refine, category, chunk, local)
                jobs[future] = (category, offset, chunk)
        done, pending = wait(jobs, timeout=timeout)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if pending:
        logger.warning(f"Refinement timed out: {len(pending)} of {len(jobs)} jobs dropped")
        for future in pending:
            future.cancel()

    found: list[Span] = []
    for future in done:
        category, offset, chunk = jobs[future]
        try:
            response = future.result()
        except Exception as e:
            logger.warning(f"Refinement failed for {category} at offset {offset}: {e}")
            continue
        items = [{**item, "type": category.value} for item in parse_refinement(response)]
        found.extend(s.shifted(offset) for s in sanitize_spans(items, chunk))

    logger.debug(f"Refinement proposed {len(found)} extra spans")
    return [*baseline, *found]


_HINTS: dict[Category, tuple[str, str]] = {
    Category.API_KEY: ("API Key", "OpenAI sk-..., GitHub PAT, GitLab, Slack xox*, Google AIza..., "
                       "AWS AKIA/ASIA..., Stripe sk_live_, SendGrid SG., etc. Prefer known prefixes."),
    Category.TOKEN: ("Token", "Bearer tokens, JWT (three base64url segments), generic opaque secrets."),
    Category.CREDIT_CARD: ("Credit Card", "13-19 digits; must pass Luhn."),
    Category.IBAN: ("IBAN", "Country code + check digits + BBAN, mod 97 = 1."),
    Category.RIB: ("RIB", "French RIB (bank code, branch code, account, key). Only if present."),
    Category.BIC: ("BIC/SWIFT", "8 or 11 chars: 4 bank, 2 country, 2 location, optional 3 branch."),
    Category.VAT: ("VAT Number", "VAT/TIN with country prefix (EU formats such as DE, IT, NL)."),
    Category.SIREN: ("SIREN", "French company id: 9 digits, Luhn."),
    Category.SIRET: ("SIRET", "French establishment id: 14 digits, Luhn."),
    Category.EMAIL: ("Email", "user@domain.tld and common email formats."),
    Category.PHONE: ("Phone", "International numbers, 9-15 digits, usual separators."),
    Category.ADDRESS: ("Address", "Postal addresses with street types (Street, Ave., Rue, Via, Calle, Strasse...)."),
    Category.ORGANIZATION: ("Organization", "Company or organisation names or departments."),
    Category.FULL_NAME: ("Full Name", "Human first + last names from context; avoid organizations."),
    Category.OTHER: ("Other", "Other secrets such as long hex/base64 keys resembling credentials."),
}


def detection_prompt(category: Category, text: str) -> str:
    name, hint = _HINTS[category]
    return (
        f"You are an information security detector. Identify all occurrences of {name}.\n"
        "Return ONLY strict JSON with the following shape:\n"
        '{"matches": [{"start": number, "end": number, "value": string}]}\n'
        "Rules:\n"
        "- Indices are Unicode code point offsets into the exact text below.\n"
        f"- {hint}\n"
        "- Avoid overlaps within this category; keep the longest, most precise span.\n"
        "- Be conservative; minimize false positives.\n"
        "- Do not include any commentary or code fences.\n\n"
        f"TEXT:\n{text}"
    )


class PromptRefiner:
    """Refiner backed by any text-completion callable (prompt → reply)."""

    def __init__(self, complete: Callable[[str], str]) -> None:
        self._complete = complete

    def refine(self, category: Category, text: str, baseline: list[Span]) -> Any:
        return self._complete(detection_prompt(category, text))
