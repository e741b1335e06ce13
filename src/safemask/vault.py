"""Vault — deterministic keyed tokens plus an encrypted token → value map.

Design goals:
  - Deterministic: HMAC-SHA-256(category | normalized value) under an
    install-local key, so the same value gets the same token across runs
  - Confidential at rest: the map is only ever persisted AES-256-GCM
    encrypted, with a fresh IV per write; exports are ciphertext-only
  - Lockable: locking drops the decrypted map from memory; unlocking
    re-decrypts the persisted blob with the local key

Tokens keep only 32 bits of the digest (``CATEGORY_XXXXXXXX``).  Two
distinct values of one category collide with probability ~2^-32 per pair,
so uniqueness is probabilistic, not guaranteed.  ``put`` never overwrites
an existing entry.
"""

from __future__ import annotations
import base64
import binascii
import copy
import hashlib
import hmac
import json
import logging
import os
import threading
import time
from typing import Any, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .patterns import TOKEN_PATTERN
from .types import Category

logger = logging.getLogger(__name__)

BLOB_VERSION = 2
_IV_BYTES = 12


class VaultError(RuntimeError):
    """Base class for vault failures."""


class VaultNotInitialized(VaultError):
    def __init__(self, message: str = "Vault not initialized") -> None:
        super().__init__(message)


class VaultLocked(VaultError):
    def __init__(self, message: str = "Vault locked") -> None:
        super().__init__(message)


class VaultDecryptionError(VaultError):
    """The blob cannot be decrypted or parsed with the local key."""


class VaultStore(Protocol):
    """Where key material and the encrypted blob live."""

    def load_keys(self) -> dict[str, str] | None: ...
    def save_keys(self, keys: dict[str, str]) -> None: ...
    def load_blob(self) -> dict[str, Any] | None: ...
    def save_blob(self, blob: dict[str, Any]) -> None: ...
    def close(self) -> None: ...


class MemoryVaultStore:
    """Process-local store (tests, embedding)."""

    __slots__ = ("_keys", "_blob")

    def __init__(self) -> None:
        self._keys: dict[str, str] | None = None
        self._blob: dict[str, Any] | None = None

    def load_keys(self) -> dict[str, str] | None:
        return dict(self._keys) if self._keys else None

    def save_keys(self, keys: dict[str, str]) -> None:
        self._keys = dict(keys)

    def load_blob(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._blob)

    def save_blob(self, blob: dict[str, Any]) -> None:
        self._blob = copy.deepcopy(blob)

    def close(self) -> None:
        pass


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(data: str) -> bytes:
    if not isinstance(data, str):
        raise ValueError(f"expected base64 text, got {type(data).__name__}")
    return base64.b64decode(data.encode("ascii"), validate=True)


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_value(category: Category | str, value: str) -> str:
    """Token-derivation input: ``CATEGORY|trimmed casefolded value``."""
    return f"{Category(str(category).upper()).value}|{(value or '').strip().casefold()}"


class TokenVault:
    """Keyed token derivation + encrypted reversible map, for one install.

    Construct once per process, call ``init()``, then hand the instance to
    every consumer.
    """

    def __init__(self, store: VaultStore | None = None, *, auto_lock_minutes: float = 10) -> None:
        self._store: VaultStore = store if store is not None else MemoryVaultStore()
        self.auto_lock_minutes = auto_lock_minutes
        self._aes: AESGCM | None = None
        self._hmac_key: bytes | None = None
        self._blob: dict[str, Any] | None = None
        self._tokens: dict[str, str] | None = None     # decrypted map, None while locked
        self._lock = threading.RLock()
        self._timer: threading.Timer | None = None
        self._timer_gen = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> "TokenVault":
        """Load (or generate) key material and decrypt the persisted map."""
        with self._lock:
            self._ensure_keys()
            blob = self._store.load_blob()
            if blob is None:
                now = _now_ms()
                self._blob = {
                    "version": BLOB_VERSION,
                    "createdAt": now,
                    "updatedAt": now,
                    "enc": {"iv": None, "ciphertext": None},
                }
                self._tokens = {}
                self._persist()
            else:
                # A stored blob that fails to decrypt is an error, never a fresh vault
                self._tokens = self._decrypt(blob)
                self._blob = blob
            logger.info(f"Vault ready with {len(self._tokens)} entries")
        return self

    @property
    def initialized(self) -> bool:
        return self._aes is not None and self._hmac_key is not None

    @property
    def is_unlocked(self) -> bool:
        """Cheap check callers make before exposing original values."""
        return self._tokens is not None

    def touch(self) -> None:
        """Re-arm the inactivity timer."""
        with self._lock:
            self._cancel_timer()
            if self.auto_lock_minutes and self.auto_lock_minutes > 0:
                self._timer = threading.Timer(
                    self.auto_lock_minutes * 60, self._expire, args=(self._timer_gen,)
                )
                self._timer.daemon = True
                self._timer.start()

    def lock(self) -> None:
        """Drop the decrypted map from memory."""
        with self._lock:
            self._cancel_timer()
            if self._tokens is not None:
                self._tokens = None
                logger.info("Vault locked")

    def unlock(self) -> None:
        """Decrypt the persisted map again with the local key."""
        with self._lock:
            if not self.initialized or self._blob is None:
                raise VaultNotInitialized()
            if self._tokens is None:
                self._tokens = self._decrypt(self._blob)
                logger.info("Vault unlocked")
        self.touch()

    def close(self) -> None:
        """Stop the inactivity timer and release the store."""
        with self._lock:
            self._cancel_timer()
        self._store.close()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def derive_token(self, category: Category | str, value: str) -> str:
        """Deterministic ``CATEGORY_XXXXXXXX`` token for a value."""
        if self._hmac_key is None:
            raise VaultNotInitialized()
        category = Category(str(category).upper())
        digest = hmac.new(
            self._hmac_key, normalize_value(category, value).encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return f"{category.value}_{digest[:8].upper()}"

    def put(self, token: str, original: str) -> None:
        """Insert if absent, then re-encrypt and persist the whole map."""
        with self._lock:
            tokens = self._require_map()
            if token not in tokens:
                tokens[token] = original
            self._persist()

    def get(self, token: str) -> str | None:
        return self._require_map().get(token)

    def get_or_create_token(self, category: Category | str, original: str) -> str:
        """Return the token for this value, recording it in the map."""
        token = self.derive_token(category, original)
        self.put(token, original)
        return token

    def rehydrate(self, text: str) -> str:
        """Replace every known token in text with its original value."""
        tokens = self._require_map()
        return TOKEN_PATTERN.sub(lambda m: tokens.get(m.group(1), m.group(0)), text)

    def clear(self) -> None:
        with self._lock:
            self._require_map()
            self._tokens = {}
            self._persist()
            logger.info("Vault cleared")

    # ------------------------------------------------------------------
    # Snapshot interchange (ciphertext only)
    # ------------------------------------------------------------------

    def export_snapshot(self) -> dict[str, Any]:
        """The persisted blob as-is; useless without the local key."""
        if self._blob is None:
            raise VaultNotInitialized()
        return copy.deepcopy(self._blob)

    def import_snapshot(self, blob: dict[str, Any]) -> None:
        """Replace the local blob wholesale and reload the map from it.

        The blob must decrypt under the local key; a foreign or corrupted
        blob raises ``VaultDecryptionError`` and leaves the vault untouched.
        """
        if not isinstance(blob, dict) or not isinstance(blob.get("enc"), dict):
            raise ValueError("Invalid vault snapshot: missing 'enc' section")
        with self._lock:
            if not self.initialized:
                raise VaultNotInitialized()
            tokens = self._decrypt(blob)
            now = _now_ms()
            self._blob = {
                "version": blob.get("version", BLOB_VERSION),
                "createdAt": blob.get("createdAt", now),
                "updatedAt": blob.get("updatedAt", now),
                "enc": dict(blob["enc"]),
            }
            self._store.save_blob(self._blob)
            self._tokens = tokens
            logger.info(f"Vault imported with {len(tokens)} entries")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._tokens or {})

    def tokens(self) -> list[str]:
        """Issued token ids (no plaintext)."""
        return sorted(self._require_map())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_map(self) -> dict[str, str]:
        if not self.initialized:
            raise VaultNotInitialized()
        if self._tokens is None:
            raise VaultLocked()
        return self._tokens

    def _ensure_keys(self) -> None:
        if self.initialized:
            return
        rec = self._store.load_keys()
        if not rec:
            rec = {
                "aes": _b64(AESGCM.generate_key(bit_length=256)),
                "hmac": _b64(os.urandom(32)),
            }
            self._store.save_keys(rec)
            logger.info("Generated new vault key material")
        try:
            self._aes = AESGCM(_unb64(rec["aes"]))
            self._hmac_key = _unb64(rec["hmac"])
        except (KeyError, ValueError, binascii.Error) as e:
            raise VaultError(f"Invalid vault key material: {e}") from e

    def _cancel_timer(self) -> None:
        self._timer_gen += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, generation: int) -> None:
        # A timer superseded by touch() or lock() must not lock the vault
        with self._lock:
            if generation == self._timer_gen:
                self.lock()

    def _decrypt(self, blob: dict[str, Any]) -> dict[str, str]:
        if self._aes is None:
            raise VaultNotInitialized()
        enc = blob.get("enc") if isinstance(blob, dict) else None
        if not isinstance(enc, dict):
            raise VaultDecryptionError("Vault blob has no 'enc' section")
        try:
            plaintext = self._aes.decrypt(_unb64(enc["iv"]), _unb64(enc["ciphertext"]), None)
            doc = json.loads(plaintext.decode("utf-8"))
        except InvalidTag as e:
            raise VaultDecryptionError("Vault blob does not decrypt with the local key") from e
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise VaultDecryptionError(f"Vault blob is corrupted: {e}") from e
        tokens = doc.get("tokens") if isinstance(doc, dict) else None
        if not isinstance(tokens, dict):
            raise VaultDecryptionError("Vault blob has no token map")
        return {str(k): str(v) for k, v in tokens.items()}

    def _persist(self) -> None:
        if self._aes is None or self._blob is None:
            raise VaultNotInitialized()
        iv = os.urandom(_IV_BYTES)
        plaintext = json.dumps({"tokens": self._tokens or {}}, ensure_ascii=False).encode("utf-8")
        self._blob["enc"] = {"iv": _b64(iv), "ciphertext": _b64(self._aes.encrypt(iv, plaintext, None))}
        self._blob["updatedAt"] = _now_ms()
        self._store.save_blob(self._blob)
        logger.debug(f"Vault persisted ({len(self._tokens or {})} entries)")
