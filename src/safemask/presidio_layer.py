"""Presidio NER refiner for the free-text categories.

Catches names, organizations and locations that the regex layer can only
approximate.  Uses spaCy under the hood; the engine is only built the
first time it is needed.
"""

from __future__ import annotations
import threading
from typing import TYPE_CHECKING, Any

from .types import Category, Span

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

# Presidio entity names per category; categories not listed are skipped.
ENTITY_MAP: dict[Category, list[str]] = {
    Category.FULL_NAME: ["PERSON"],
    Category.ORGANIZATION: ["ORGANIZATION", "ORG"],
    Category.ADDRESS: ["LOCATION"],
    Category.EMAIL: ["EMAIL_ADDRESS"],
    Category.PHONE: ["PHONE_NUMBER"],
    Category.IBAN: ["IBAN_CODE"],
    Category.CREDIT_CARD: ["CREDIT_CARD"],
}


def build_engine(language: str = "en") -> AnalyzerEngine:
    from presidio_analyzer import AnalyzerEngine
    from presidio_analyzer.nlp_engine import NlpEngineProvider

    provider = NlpEngineProvider(nlp_configuration={
        "nlp_engine_name": "spacy",
        "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
    })
    return AnalyzerEngine(nlp_engine=provider.create_engine(), supported_languages=[language])


class PresidioRefiner:
    """Refiner that asks Presidio for the entities mapped to each category."""

    def __init__(
        self,
        *,
        language: str = "en",
        score_threshold: float = 0.35,
        engine: AnalyzerEngine | None = None,
    ) -> None:
        self.language = language
        self.score_threshold = score_threshold
        self._engine = engine
        self._engine_lock = threading.Lock()

    @property
    def engine(self) -> AnalyzerEngine:
        with self._engine_lock:
            if self._engine is None:
                self._engine = build_engine(self.language)
        return self._engine

    def refine(self, category: Category, text: str, baseline: list[Span]) -> list[dict[str, Any]]:
        entities = ENTITY_MAP.get(category)
        if not entities:
            return []
        results = self.engine.analyze(
            text=text,
            language=self.language,
            entities=entities,
            score_threshold=self.score_threshold,
        )
        return [
            {"start": r.start, "end": r.end, "value": text[r.start:r.end]}
            for r in results
        ]
