"""SafeMask — detect, redact and reversibly pseudonymize sensitive text."""

from .anonymizer import Anonymizer, AnonymizerConfig, apply_policy, deanonymize, redaction_mask
from .config import create_anonymizer, load_config, load_from_yaml, open_vault
from .diff import diff_html, diff_tokens
from .patterns import detect_all
from .polish import freeze_tokens, polish, thaw_tokens
from .refine import PromptRefiner, refine_detections
from .resolver import resolve_overlaps, sanitize_spans
from .types import AnonymizedText, Category, Mode, Policy, Replacement, Span
from .vault import (
    MemoryVaultStore,
    TokenVault,
    VaultDecryptionError,
    VaultError,
    VaultLocked,
    VaultNotInitialized,
)
from .vault_sqlite import SqliteVaultStore

__all__ = [
    "Anonymizer", "AnonymizerConfig", "apply_policy", "deanonymize", "redaction_mask",
    "create_anonymizer", "load_config", "load_from_yaml", "open_vault",
    "diff_html", "diff_tokens",
    "detect_all",
    "freeze_tokens", "polish", "thaw_tokens",
    "PromptRefiner", "refine_detections",
    "resolve_overlaps", "sanitize_spans",
    "AnonymizedText", "Category", "Mode", "Policy", "Replacement", "Span",
    "MemoryVaultStore", "TokenVault", "SqliteVaultStore",
    "VaultError", "VaultNotInitialized", "VaultLocked", "VaultDecryptionError",
]
__version__ = "0.1.0"
