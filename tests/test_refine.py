"""Tests for the refinement layer (LLM prompt / NER collaborators)."""

import json
import time
from types import SimpleNamespace

import pytest

from safemask import Anonymizer, AnonymizerConfig, Policy
from safemask.presidio_layer import ENTITY_MAP, PresidioRefiner
from safemask.refine import (
    PromptRefiner,
    chunk_text,
    detection_prompt,
    parse_refinement,
    refine_detections,
)
from safemask.types import Category, Span

TEXT = "aaaaaaaaaa" + "Zed" + "bbbbbbb"


class FindWord:
    """Refiner that reports every occurrence of one word."""

    def __init__(self, word, fail_for=(), delay=0.0):
        self.word = word
        self.fail_for = set(fail_for)
        self.delay = delay
        self.calls = []

    def refine(self, category, text, baseline):
        self.calls.append((category, text))
        if self.delay:
            time.sleep(self.delay)
        if category in self.fail_for:
            raise RuntimeError("model unavailable")
        i = text.find(self.word)
        if i < 0:
            return "[]"
        return json.dumps({"matches": [{"start": i, "end": i + len(self.word), "value": "?"}]})


# ── Chunking and parsing ─────────────────────────────────────────────

def test_chunk_text():
    assert chunk_text("abcdefghij", 4) == [(0, "abcd"), (4, "efgh"), (8, "ij")]
    assert chunk_text("", 4) == []
    with pytest.raises(ValueError):
        chunk_text("abc", 0)


def test_parse_refinement_shapes():
    item = {"start": 0, "end": 3, "value": "abc"}
    assert parse_refinement(json.dumps({"matches": [item]})) == [item]
    assert parse_refinement({"matches": [item]}) == [item]
    assert parse_refinement([item, 1, "x"]) == [item]
    assert parse_refinement(json.dumps({"matches": [item]}).encode()) == [item]


def test_parse_refinement_lenient():
    reply = 'Sure, here you go: {"matches": [{"start": 1, "end": 2, "value": "b"}]} Hope it helps'
    assert parse_refinement(reply) == [{"start": 1, "end": 2, "value": "b"}]


def test_parse_refinement_garbage():
    assert parse_refinement("not json at all") == []
    assert parse_refinement(None) == []
    assert parse_refinement({"no": "matches"}) == []
    assert parse_refinement(42) == []


# ── refine_detections ────────────────────────────────────────────────

def test_refinement_shifts_chunk_offsets():
    baseline = [Span(Category.EMAIL, 0, 2, "aa")]
    out = refine_detections(TEXT, baseline, FindWord("Zed"), categories=[Category.FULL_NAME], chunk_size=10)
    assert out == [baseline[0], Span(Category.FULL_NAME, 10, 13, "Zed")]


def test_refinement_forces_category():
    class Liar:
        def refine(self, category, text, baseline):
            return [{"type": "EMAIL", "start": 0, "end": 3, "value": "aaa"}]

    out = refine_detections("aaa", [], Liar(), categories=[Category.ORGANIZATION])
    assert [s.type for s in out] == [Category.ORGANIZATION]


def test_refinement_drops_out_of_range():
    class Wild:
        def refine(self, category, text, baseline):
            return [{"start": 0, "end": 500, "value": "x"}, {"start": 2, "end": 1, "value": "x"}]

    assert refine_detections("short", [], Wild(), categories=[Category.OTHER]) == []


def test_failing_job_does_not_stop_others():
    refiner = FindWord("Zed", fail_for={Category.ORGANIZATION})
    out = refine_detections(
        TEXT, [], refiner, categories=[Category.FULL_NAME, Category.ORGANIZATION], chunk_size=10
    )
    assert out == [Span(Category.FULL_NAME, 10, 13, "Zed")]
    assert len(refiner.calls) == 4


def test_timeout_keeps_baseline():
    baseline = [Span(Category.EMAIL, 0, 2, "aa")]
    started = time.monotonic()
    out = refine_detections(
        TEXT, baseline, FindWord("Zed", delay=1.0), categories=[Category.FULL_NAME], timeout=0.1
    )
    assert out == baseline
    assert time.monotonic() - started < 0.9


def test_baseline_passed_in_chunk_offsets():
    seen = {}

    class Spy:
        def refine(self, category, text, baseline):
            seen[text] = baseline
            return []

    baseline = [Span(Category.EMAIL, 12, 14, "dz")]
    refine_detections("a" * 10 + "bbdzb", baseline, Spy(), categories=[Category.EMAIL], chunk_size=10)
    assert seen["bbdzb"] == [Span(Category.EMAIL, 2, 4, "dz")]
    assert seen["a" * 10] == []


# ── Collaborators ────────────────────────────────────────────────────

def test_prompt_refiner():
    prompts = []

    def complete(prompt):
        prompts.append(prompt)
        return '```json\n{"matches": [{"start": 10, "end": 13, "value": "Zed"}]}\n```'

    out = refine_detections(TEXT, [], PromptRefiner(complete), categories=[Category.FULL_NAME], chunk_size=50)
    assert out == [Span(Category.FULL_NAME, 10, 13, "Zed")]
    assert prompts[0].endswith("TEXT:\n" + TEXT)
    assert "Full Name" in prompts[0]


def test_detection_prompt_covers_every_category():
    for category in Category:
        assert "TEXT:\nabc" in detection_prompt(category, "abc")


def test_presidio_refiner_with_engine():
    calls = []

    class Engine:
        def analyze(self, text, language, entities, score_threshold):
            calls.append(entities)
            i = text.find("Zed")
            return [SimpleNamespace(start=i, end=i + 3, entity_type="PERSON", score=0.9)]

    refiner = PresidioRefiner(engine=Engine())
    assert refiner.refine(Category.FULL_NAME, TEXT, []) == [{"start": 10, "end": 13, "value": "Zed"}]
    assert calls == [ENTITY_MAP[Category.FULL_NAME]]
    assert refiner.refine(Category.SIREN, TEXT, []) == []
    assert len(calls) == 1


def test_presidio_engine_builds():
    pytest.importorskip("presidio_analyzer")
    pytest.importorskip("en_core_web_sm")
    refiner = PresidioRefiner()
    out = refiner.refine(Category.FULL_NAME, "I met John Smith in Paris yesterday.", [])
    assert any(item["value"] == "John Smith" for item in out)


# ── Anonymizer integration ───────────────────────────────────────────

def test_anonymizer_uses_refiner(vault):
    a = Anonymizer(AnonymizerConfig(
        policy=Policy({"FULL_NAME": "redact"}),
        refiner=FindWord("Zed"),
        chunk_size=10,
    ))
    assert a.anonymize(TEXT, vault).text == "aaaaaaaaaa[REDACTED:FULL_NAME]bbbbbbb"
