"""Anonymizer — the main API.  Layered: regex first, then refinement.

Usage:
    from safemask import Anonymizer, AnonymizerConfig, Policy, TokenVault

    vault = TokenVault().init()          # one per process
    anonymizer = Anonymizer(AnonymizerConfig(policy=Policy({"EMAIL": "pseudo"})))

    result = anonymizer.anonymize("Email me at john@acme.com", vault)
    print(result.text)                   # "Email me at EMAIL_5F0C1A2B"

    print(deanonymize(result.text, vault))  # "Email me at john@acme.com"
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .patterns import detect_all
from .refine import DEFAULT_CHUNK_SIZE, Refiner, refine_detections
from .resolver import dedupe_spans, resolve_overlaps, sanitize_spans
from .types import AnonymizedText, Category, Mode, Policy, Replacement, Span
from .vault import TokenVault

logger = logging.getLogger(__name__)


def redaction_mask(category: Category, value: str) -> str:
    """Irreversible replacement text for a redacted span."""
    if category is Category.EMAIL and value.count("@") == 1:
        return "***@***.***"
    return f"[REDACTED:{category.value}]"


def apply_policy(
    text: str,
    spans: Iterable[Span],
    policy: Policy,
    vault: TokenVault | None = None,
) -> AnonymizedText:
    """Rewrite ``text`` against a final, non-overlapping span set.

    Spans are processed in ascending start order: the gap before each span
    is copied verbatim, the span itself is masked or tokenized per its
    category's mode.  ``pseudo`` spans need a vault and are recorded in the
    replacement list; ``ignore`` spans (if any slipped through) are copied.
    """
    parts: list[str] = []
    replacements: list[Replacement] = []
    final = sorted(spans, key=lambda s: s.start)
    cursor = 0
    for span in final:
        if span.start < cursor:
            raise ValueError(f"Overlapping span at {span.start}; resolve overlaps first")
        parts.append(text[cursor:span.start])
        original = text[span.start:span.end]
        mode = policy.mode_for(span.type)
        if mode is Mode.REDACT:
            parts.append(redaction_mask(span.type, original))
        elif mode is Mode.PSEUDO:
            if vault is None:
                raise ValueError("pseudo mode requires a vault")
            token = vault.get_or_create_token(span.type, original)
            parts.append(token)
            replacements.append(Replacement(span.type, original, token))
        else:
            parts.append(original)
        cursor = span.end
    parts.append(text[cursor:])
    return AnonymizedText(text="".join(parts), replacements=replacements, spans=final)


def deanonymize(text: str, vault: TokenVault) -> str:
    """Restore original values for every known token in ``text``.

    A locked vault leaves the text untouched; unknown tokens and redaction
    masks stay as they are.
    """
    if not vault.is_unlocked:
        logger.info("Vault is locked; returning text unchanged")
        return text
    vault.touch()
    return vault.rehydrate(text)


@dataclass
class AnonymizerConfig:
    """Configuration for the Anonymizer."""
    policy: Policy = field(default_factory=Policy.default)
    # Layer 2: optional refinement collaborator
    refiner: Refiner | None = None
    refine_timeout: float | None = 10.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    # Layer 3: extra scanners, text → spans (Span objects or mappings)
    custom_scanners: list[Callable[[str], Iterable[Any]]] = field(default_factory=list)
    # Values that should never be touched
    allow_list: set[str] = field(default_factory=set)


class Anonymizer:
    """Layered anonymizer.

    Layer 1: regex detectors with checksum validation
    Layer 2: refinement collaborator (LLM prompt, NER), best effort
    Layer 3: custom scanners (user-provided callables)
    """

    def __init__(self, config: AnonymizerConfig | None = None) -> None:
        self.config = config or AnonymizerConfig()

    @property
    def policy(self) -> Policy:
        return self.config.policy

    def detect(self, text: str) -> list[Span]:
        """Candidate spans from every layer, before any policy filtering."""
        # --- Layer 1: Regex (fast, deterministic) ---
        spans = detect_all(text)

        # --- Layer 2: Refinement (if configured) ---
        if self.config.refiner is not None:
            spans = refine_detections(
                text,
                spans,
                self.config.refiner,
                chunk_size=self.config.chunk_size,
                timeout=self.config.refine_timeout,
            )

        # --- Layer 3: Custom scanners ---
        for scanner in self.config.custom_scanners:
            spans.extend(scanner(text))

        return dedupe_spans(sanitize_spans(spans, text))

    def resolve(self, text: str) -> list[Span]:
        """Final span set: ignored categories and allow-listed values are
        dropped *before* overlap resolution so they never win a slot."""
        active = self.policy.active()
        candidates = [
            s for s in self.detect(text)
            if s.type in active and s.value not in self.config.allow_list
        ]
        final = resolve_overlaps(candidates)
        logger.debug(f"Resolved {len(candidates)} candidates to {len(final)} spans")
        return final

    def anonymize(self, text: str, vault: TokenVault) -> AnonymizedText:
        """Detect, resolve and transform ``text`` under the configured policy."""
        vault.touch()
        result = apply_policy(text, self.resolve(text), self.policy, vault)
        logger.info(
            f"Anonymized {len(result.spans)} spans ({len(result.replacements)} pseudonymized)"
        )
        return result

    def anonymize_many(self, texts: Iterable[str], vault: TokenVault) -> list[AnonymizedText]:
        return [self.anonymize(text, vault) for text in texts]

    def deanonymize(self, text: str, vault: TokenVault) -> str:
        return deanonymize(text, vault)

