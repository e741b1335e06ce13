"""YAML/dict config loader for safemask.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    safemask:
      auto_lock_minutes: 10
      modes:
        EMAIL: pseudo
        PHONE: pseudo
        IBAN: redact
      allow_list:
        - support@example.com
      refine:
        timeout: 5
        chunk_size: 6000
      vault:
        backend: sqlite          # "memory" or "sqlite"
        path: ~/.safemask/vault.db

When ``modes`` is omitted the built-in default profile applies; when it
is given, every category it does not list is ignored.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Mapping

from .anonymizer import Anonymizer, AnonymizerConfig
from .refine import DEFAULT_CHUNK_SIZE, Refiner
from .types import Policy
from .vault import MemoryVaultStore, TokenVault
from .vault_sqlite import SqliteVaultStore

DEFAULT_DB = os.environ.get(
    "SAFEMASK_DB",
    str(Path.home() / ".safemask" / "vault.db"),
)


def load_config(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = dict(data or {})
    # Support nested under "safemask" key or flat
    if "safemask" in data:
        data = dict(data["safemask"] or {})

    refine = data.get("refine") or {}
    vault = data.get("vault") or {}
    backend = vault.get("backend", "sqlite")
    if backend not in ("memory", "sqlite"):
        raise ValueError(f"Unknown vault backend: {backend!r}")

    return {
        "modes": data.get("modes"),
        "auto_lock_minutes": float(data.get("auto_lock_minutes", 10)),
        "allow_list": set(data.get("allow_list") or []),
        "refine_timeout": refine.get("timeout", 10.0),
        "chunk_size": int(refine.get("chunk_size", DEFAULT_CHUNK_SIZE)),
        "vault_backend": backend,
        "vault_path": vault.get("path", DEFAULT_DB),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path, encoding="utf-8") as f:
        return load_config(yaml.safe_load(f))


def build_policy(cfg: Mapping[str, Any], overrides: Mapping[str, str] | None = None) -> Policy:
    modes = cfg.get("modes")
    policy = Policy.default() if modes is None else Policy(modes)
    return policy.with_overrides(overrides) if overrides else policy


def open_vault(cfg: Mapping[str, Any]) -> TokenVault:
    """Build the configured store and return an initialized vault."""
    if cfg["vault_backend"] == "memory":
        store = MemoryVaultStore()
    else:
        store = SqliteVaultStore(cfg["vault_path"])
    return TokenVault(store, auto_lock_minutes=cfg["auto_lock_minutes"]).init()


def create_anonymizer(
    cfg: Mapping[str, Any],
    *,
    overrides: Mapping[str, str] | None = None,
    refiner: Refiner | None = None,
) -> Anonymizer:
    """Create a fully configured anonymizer from a normalized config."""
    return Anonymizer(AnonymizerConfig(
        policy=build_policy(cfg, overrides),
        refiner=refiner,
        refine_timeout=cfg["refine_timeout"],
        chunk_size=cfg["chunk_size"],
        allow_list=set(cfg["allow_list"]),
    ))
