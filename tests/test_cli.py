"""Tests for the command-line interface."""

import io
import json
import re

import pytest

from safemask.cli import main
from safemask.vault_sqlite import SqliteVaultStore


@pytest.fixture
def run(tmp_path, monkeypatch, capsys):
    db = str(tmp_path / "vault.db")

    def _run(*argv, stdin=""):
        monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
        code = main(["--db", db, *argv])
        out, err = capsys.readouterr()
        return code, out, err

    return _run


def test_anonymize_then_deanonymize(run):
    code, out, _ = run("anonymize", stdin="Mail bob@x.com")
    assert code == 0
    doc = json.loads(out)
    assert re.fullmatch(r"Mail EMAIL_[0-9A-F]{8}", doc["text"])
    assert doc["replacements"][0]["type"] == "EMAIL"
    assert doc["replacements"][0]["value"] == "bob@x.com"
    assert doc["spans"] == [{"type": "EMAIL", "start": 5, "end": 14}]

    code, out, _ = run("deanonymize", stdin=doc["text"])
    assert code == 0
    assert out == "Mail bob@x.com"


def test_plain_and_mode_override(run):
    code, out, _ = run("--mode", "EMAIL=redact", "anonymize", "--plain", stdin="Mail bob@x.com")
    assert code == 0
    assert out == "Mail ***@***.***"


def test_bad_mode_override(run):
    code, _, err = run("--mode", "EMAIL", "anonymize", stdin="x")
    assert code == 1
    assert err.startswith("Error:")


def test_export_import_clear(run):
    _, out, _ = run("anonymize", "--plain", stdin="Mail bob@x.com")
    _, snapshot, _ = run("export")
    assert "bob@x.com" not in snapshot
    assert json.loads(snapshot)["version"] == 2

    code, _, err = run("clear")
    assert code == 0
    _, restored, _ = run("deanonymize", stdin=out)
    assert restored == out

    code, _, err = run("import", stdin=snapshot)
    assert code == 0
    assert "1 entries" in err
    _, restored, _ = run("deanonymize", stdin=out)
    assert restored == "Mail bob@x.com"


def test_import_garbage_fails(run):
    code, _, err = run("import", stdin="{}")
    assert code == 1
    assert "Error:" in err

    code, _, err = run("import", stdin="not json")
    assert code == 1


def test_diff(run, tmp_path):
    a = tmp_path / "a.txt"
    b = tmp_path / "b.txt"
    a.write_text("Mail bob@x.com", encoding="utf-8")
    b.write_text("Mail EMAIL_1A2B3C4D", encoding="utf-8")
    code, out, _ = run("diff", str(a), str(b))
    assert code == 0
    assert '<span class="sm-del">bob@x.com</span>' in out
    assert '<span class="sm-ins">EMAIL_1A2B3C4D</span>' in out


def test_categories(run):
    code, out, _ = run("--mode", "OTHER=redact", "categories")
    assert code == 0
    lines = out.splitlines()
    assert len(lines) == 15
    assert lines[0].split() == ["API_KEY", "100", "redact"]
    assert lines[-1].split() == ["OTHER", "10", "redact"]


def test_every_command_closes_the_store(run, monkeypatch):
    closed = []
    original = SqliteVaultStore.close

    def close(self):
        closed.append(self)
        original(self)

    monkeypatch.setattr(SqliteVaultStore, "close", close)
    run("anonymize", stdin="Mail bob@x.com")
    run("deanonymize", stdin="Mail")
    run("export")
    run("clear")
    code, _, _ = run("import", stdin="{}")
    assert code == 1
    assert len(closed) == 5
