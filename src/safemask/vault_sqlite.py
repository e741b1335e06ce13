"""Persistent vault store backed by SQLite — survives process restarts.

Drop-in replacement for MemoryVaultStore when you need durability.

Usage:
    store = SqliteVaultStore(db_path="~/.safemask/vault.db")
    vault = TokenVault(store).init()

The file holds two JSON records: the key material and the encrypted map
blob.  Plaintext values are never written here.
"""

from __future__ import annotations
import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

KEYS_RECORD = "safemask_keys_v2"
VAULT_RECORD = "safemask_vault"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    name TEXT NOT NULL PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at REAL NOT NULL DEFAULT (julianday('now'))
);
"""


class SqliteVaultStore:
    """Key material + encrypted blob in a local SQLite file."""

    __slots__ = ("_db", "_path")

    def __init__(self, db_path: str | Path = "vault.db") -> None:
        self._path = Path(db_path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        created = not self._path.exists()
        self._db = sqlite3.connect(str(self._path), check_same_thread=False)
        self._db.executescript(_SCHEMA)
        if created:
            # Key material lives here; keep it owner-only
            os.chmod(self._path, 0o600)
            logger.info(f"Created vault store at {self._path}")

    def _read(self, name: str) -> Any:
        row = self._db.execute(
            "SELECT payload FROM records WHERE name = ?", (name,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    def _write(self, name: str, payload: Any) -> None:
        self._db.execute(
            "INSERT OR REPLACE INTO records (name, payload, updated_at) "
            "VALUES (?, ?, julianday('now'))",
            (name, json.dumps(payload)),
        )
        self._db.commit()

    def load_keys(self) -> dict[str, str] | None:
        return self._read(KEYS_RECORD)

    def save_keys(self, keys: dict[str, str]) -> None:
        self._write(KEYS_RECORD, keys)

    def load_blob(self) -> dict[str, Any] | None:
        return self._read(VAULT_RECORD)

    def save_blob(self, blob: dict[str, Any]) -> None:
        self._write(VAULT_RECORD, blob)

    def close(self) -> None:
        self._db.close()
