"""CLI interface for safemask.

Usage:
    # Anonymize (stdin: text, stdout: JSON with text + replacements)
    echo 'Mail jane@acme.com' | safemask anonymize

    # De-anonymize (stdin: text with tokens, stdout: restored text)
    echo 'Mail EMAIL_1A2B3C4D' | safemask deanonymize

    # Review what changed
    safemask diff original.txt anonymized.txt > review.html

    # Move the encrypted map between machines sharing the same key store
    safemask export > vault.json
    safemask import < vault.json

All state is persisted in SQLite so the vault survives across calls.
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

from .config import DEFAULT_DB, create_anonymizer, load_config, load_from_yaml, open_vault
from .diff import diff_html
from .types import PRIORITY, Category
from .vault import TokenVault, VaultError


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration (stderr, stdout carries results)."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _parse_overrides(pairs: list[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for pair in pairs:
        category, sep, mode = pair.partition("=")
        if not sep or not category or not mode:
            raise ValueError(f"Invalid --mode {pair!r}, expected CATEGORY=MODE")
        overrides[category.strip().upper()] = mode.strip().lower()
    return overrides


def _load(args: argparse.Namespace) -> dict:
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    if args.db:
        cfg["vault_path"] = args.db
        cfg["vault_backend"] = "sqlite"
    return cfg


def _vault(args: argparse.Namespace) -> TokenVault:
    return open_vault(_load(args))


def cmd_anonymize(args: argparse.Namespace) -> None:
    """Anonymize plain text on stdin."""
    cfg = _load(args)
    refiner = None
    if args.presidio:
        from .presidio_layer import PresidioRefiner
        refiner = PresidioRefiner(language=args.language)
    anonymizer = create_anonymizer(cfg, overrides=_parse_overrides(args.mode), refiner=refiner)
    vault = open_vault(cfg)
    try:
        result = anonymizer.anonymize(sys.stdin.read(), vault)
    finally:
        vault.close()

    if args.plain:
        sys.stdout.write(result.text)
        return

    # Audit list carries originals; it is the caller's to keep or drop
    output = {
        "text": result.text,
        "replacements": [
            {"type": r.type.value, "value": r.value, "token": r.token}
            for r in result.replacements
        ],
        "spans": [
            {"type": s.type.value, "start": s.start, "end": s.end}
            for s in result.spans
        ],
    }
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_deanonymize(args: argparse.Namespace) -> None:
    """Restore tokens in text from stdin."""
    vault = _vault(args)
    try:
        sys.stdout.write(vault.rehydrate(sys.stdin.read()))
    finally:
        vault.close()


def cmd_diff(args: argparse.Namespace) -> None:
    """HTML word diff of two files."""
    original = Path(args.original).read_text(encoding="utf-8")
    transformed = Path(args.transformed).read_text(encoding="utf-8")
    sys.stdout.write(diff_html(original, transformed))
    sys.stdout.write("\n")


def cmd_export(args: argparse.Namespace) -> None:
    """Print the encrypted vault snapshot as JSON."""
    vault = _vault(args)
    try:
        json.dump(vault.export_snapshot(), sys.stdout, indent=2)
    finally:
        vault.close()
    sys.stdout.write("\n")


def cmd_import(args: argparse.Namespace) -> None:
    """Replace the local vault with a snapshot read from stdin."""
    vault = _vault(args)
    try:
        vault.import_snapshot(json.loads(sys.stdin.read()))
        sys.stderr.write(f"Imported vault with {vault.size} entries\n")
    finally:
        vault.close()


def cmd_clear(args: argparse.Namespace) -> None:
    """Clear the vault."""
    vault = _vault(args)
    try:
        vault.clear()
    finally:
        vault.close()
    sys.stderr.write("Vault cleared\n")


def cmd_categories(args: argparse.Namespace) -> None:
    """List categories with their priority and active mode."""
    cfg = _load(args)
    policy = create_anonymizer(cfg, overrides=_parse_overrides(args.mode)).policy
    for category in sorted(Category, key=lambda c: (-PRIORITY[c], c.value)):
        sys.stdout.write(f"{category.value:<14} {PRIORITY[category]:>4}  {policy[category].value}\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="safemask",
        description="Detect, redact and reversibly pseudonymize sensitive data",
    )
    parser.add_argument("--db", default=None, help=f"SQLite vault path (default {DEFAULT_DB})")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument(
        "--mode", action="append", default=[], metavar="CATEGORY=MODE",
        help="Override the mode of one category (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("anonymize", help="Anonymize plain text (stdin)")
    p.add_argument("--plain", action="store_true", help="Print only the transformed text")
    p.add_argument("--presidio", action="store_true", help="Refine with Presidio NER")
    p.add_argument("--language", default="en", help="Language code for --presidio")
    sub.add_parser("deanonymize", help="Restore tokens (stdin)")
    p = sub.add_parser("diff", help="HTML word diff of two files")
    p.add_argument("original")
    p.add_argument("transformed")
    sub.add_parser("export", help="Print the encrypted vault snapshot")
    sub.add_parser("import", help="Import an encrypted vault snapshot (stdin)")
    sub.add_parser("clear", help="Clear the vault")
    sub.add_parser("categories", help="List categories, priorities and modes")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    cmds = {
        "anonymize": cmd_anonymize,
        "deanonymize": cmd_deanonymize,
        "diff": cmd_diff,
        "export": cmd_export,
        "import": cmd_import,
        "clear": cmd_clear,
        "categories": cmd_categories,
    }
    try:
        cmds[args.command](args)
    except (VaultError, ValueError, OSError) as e:
        sys.stderr.write(f"Error: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
