"""Layer 1 — per-category regex detectors with checksum validation.

Each detector is a syntactic pass followed, where the category has one,
by a checksum validator that throws out plausible-looking but invalid
numbers.  Detection never looks at the policy: every category is always
scanned, filtering by mode happens later.
"""

from __future__ import annotations
import logging
import re
from typing import Callable, Iterator

from .types import Category, Span
from .validators import (
    VAT_FORMATS,
    iban_valid,
    luhn_valid,
    rib_valid,
    siren_valid,
    siret_valid,
    vat_format_valid,
)

logger = logging.getLogger(__name__)

# Issued tokens: CATEGORY_XXXXXXXX (8 uppercase hex digits).
TOKEN_PATTERN = re.compile(r"\b([A-Z_]+_[0-9A-F]{8})\b")

_UPPER = "A-ZÀ-ÖØ-Þ"
_LOWER = "a-zß-öø-ÿœæ"
_WORD = r"[\wÀ-ÿ'\-.]+"

_EMAIL = re.compile(r"(?<!\w)[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}(?!\w)")

_PHONE = re.compile(
    r"(?<!\w)"
    r"(?:\+\d{1,3}[\s.\-]?)?"
    r"(?:\(?\d{1,4}\)?[\s.\-]?){2,6}"
    r"\d{2,4}"
    r"(?!\w)"
)

_STREET_TYPES = "|".join([
    r"street", r"st\.?", r"strasse", r"straße", r"str\.?", r"avenue", r"ave\.?", r"av\.?",
    r"boulevard", r"blvd\.?", r"road", r"rd\.?", r"route", r"chemin", r"rue", r"calle",
    r"carrer", r"via", r"rua", r"place", r"plaza", r"piazza", r"platz", r"square",
    r"allee", r"allée", r"way", r"drive", r"dr\.?", r"lane", r"ln\.?", r"court", r"ct\.?",
    r"highway", r"hwy\.?",
])

# "12 rue de la Paix", "5 Calle Mayor"
_ADDRESS_TYPE_FIRST = re.compile(
    rf"\b\d{{1,5}}\s+(?i:{_STREET_TYPES})\s+{_WORD}(?:\s+{_WORD}){{0,5}}"
)
# "221 Baker Street", "10 Downing St."
_ADDRESS_TYPE_LAST = re.compile(
    rf"\b\d{{1,5}}\s+(?:[{_UPPER}][{_LOWER}'\-]+\s+){{1,3}}(?i:{_STREET_TYPES})(?!\w)"
)

_LEGAL_SUFFIXES = "|".join([
    r"Inc\.?", r"LLC", r"Ltd\.?", r"Limited", r"PLC", r"GmbH", r"AG", r"BV", r"NV", r"AB",
    r"Oy", r"AS", r"A\.S\.?", r"KK", r"K\.K\.?", r"Pty\.?\s+Ltd\.?", r"Pty\.?", r"LLP", r"LP",
    r"Co\.?", r"Company", r"Corp\.?", r"Corporation",
    r"SASU", r"SAS", r"SARL", r"EURL", r"SA", r"S\.A\.?", r"S\.p\.A\.?", r"Srl", r"SL",
])

_ORGANIZATION = re.compile(
    rf"\b(?:[{_UPPER}0-9][\wÀ-ÿ'&\-.]*,?\s+){{1,3}}(?:{_LEGAL_SUFFIXES})(?!\w)"
)

_FULL_NAME = re.compile(rf"\b[{_UPPER}][{_LOWER}]+\s+[{_UPPER}][{_LOWER}]+\b")

# Compact "FR1420041010050500013M02606" or printed "FR14 2004 1010 …".
_IBAN = re.compile(r"\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]{4}){2,7}(?: ?[A-Z0-9]{1,3})?\b")

_BIC = re.compile(r"\b[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}(?:[A-Z0-9]{3})?\b")

_CREDIT_CARD = re.compile(r"\b\d(?:[ \-]?\d){12,18}\b")

_SIREN = re.compile(r"\b\d{9}\b")
_SIRET = re.compile(r"\b\d{14}\b")

_VAT = re.compile(r"\b(?:" + "|".join(VAT_FORMATS.values()) + r")\b")

_RIB = re.compile(r"\b\d{5}\s?\d{5}\s?[A-Za-z0-9]{11}\s?\d{2}\b")

# Vendor-specific secrets, then generic bearer / JWT tokens.
_SECRETS: list[tuple[Category, re.Pattern]] = [
    (Category.API_KEY, re.compile(r"\bsk-[A-Za-z0-9]{32,}\b")),                      # OpenAI
    (Category.API_KEY, re.compile(r"\bgithub_pat_[A-Za-z0-9_]{70,}\b")),
    (Category.API_KEY, re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36}\b")),
    (Category.API_KEY, re.compile(r"\bglpat-[A-Za-z0-9_\-]{20,}\b")),
    (Category.API_KEY, re.compile(
        r"\bxox[abps]-[A-Za-z0-9\-]{10,}-[A-Za-z0-9\-]{10,}(?:-[A-Za-z0-9\-]{10,})?\b"
    )),                                                                              # Slack
    (Category.API_KEY, re.compile(r"\bAKIA[0-9A-Z]{16}\b")),                         # AWS
    (Category.API_KEY, re.compile(r"\bASIA[0-9A-Z]{16}\b")),                         # AWS STS
    (Category.API_KEY, re.compile(r"\bAIza[0-9A-Za-z\-_]{35}\b")),                   # Google
    (Category.API_KEY, re.compile(r"\bsk_live_[0-9A-Za-z]{24,}\b")),                 # Stripe
    (Category.API_KEY, re.compile(r"\bSG\.[A-Za-z0-9_\-]{22}\.[A-Za-z0-9_\-]{43}\b")),  # SendGrid
    (Category.TOKEN, re.compile(r"\bBearer\s+[A-Za-z0-9\-._~+/]+=*(?!\w)")),
    (Category.TOKEN, re.compile(r"\beyJ[A-Za-z0-9_\-]*\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]*\b")),  # JWT
]

_HEX_RUN = re.compile(r"\b[a-fA-F0-9]{32,}\b")
_BASE64_RUN = re.compile(r"\b[A-Za-z0-9+/]{40,}=*(?!\w)")


def _scan(
    category: Category,
    pattern: re.Pattern,
    text: str,
    validator: Callable[[str], bool] | None = None,
) -> Iterator[Span]:
    for m in pattern.finditer(text):
        if validator is None or validator(m.group()):
            yield Span(category, m.start(), m.end(), m.group())


# ------------------------------------------------------------------
# Per-category detectors
# ------------------------------------------------------------------

def detect_emails(text: str) -> list[Span]:
    return list(_scan(Category.EMAIL, _EMAIL, text))


def detect_phones(text: str) -> list[Span]:
    """Phone-shaped runs carrying 9 to 15 digits once separators are gone."""
    def digits_in_range(s: str) -> bool:
        return 9 <= sum(ch.isdigit() for ch in s) <= 15
    return list(_scan(Category.PHONE, _PHONE, text, digits_in_range))


def detect_addresses(text: str) -> list[Span]:
    return [
        *_scan(Category.ADDRESS, _ADDRESS_TYPE_FIRST, text),
        *_scan(Category.ADDRESS, _ADDRESS_TYPE_LAST, text),
    ]


def detect_organizations(text: str) -> list[Span]:
    return list(_scan(Category.ORGANIZATION, _ORGANIZATION, text))


def detect_full_names(text: str) -> list[Span]:
    return list(_scan(Category.FULL_NAME, _FULL_NAME, text))


def detect_ibans(text: str) -> list[Span]:
    """IBANs passing mod-97.

    The printed form may run into a following 4-character word; trailing
    groups are dropped one at a time until the checksum holds.
    """
    out: list[Span] = []
    for m in _IBAN.finditer(text):
        candidate = m.group()
        while candidate:
            if iban_valid(candidate):
                out.append(Span(Category.IBAN, m.start(), m.start() + len(candidate), candidate))
                break
            if " " not in candidate:
                break
            candidate = candidate.rsplit(" ", 1)[0]
    return out


def detect_ribs(text: str) -> list[Span]:
    return list(_scan(Category.RIB, _RIB, text, rib_valid))


def detect_bics(text: str) -> list[Span]:
    return list(_scan(Category.BIC, _BIC, text))


def detect_credit_cards(text: str) -> list[Span]:
    """13–19 digit runs (spaces/dashes allowed) passing Luhn."""
    def card_valid(s: str) -> bool:
        digits = re.sub(r"\D", "", s)
        return 13 <= len(digits) <= 19 and luhn_valid(digits)
    return list(_scan(Category.CREDIT_CARD, _CREDIT_CARD, text, card_valid))


def detect_sirens(text: str) -> list[Span]:
    return list(_scan(Category.SIREN, _SIREN, text, siren_valid))


def detect_sirets(text: str) -> list[Span]:
    return list(_scan(Category.SIRET, _SIRET, text, siret_valid))


def detect_vats(text: str) -> list[Span]:
    return list(_scan(Category.VAT, _VAT, text, vat_format_valid))


def detect_secrets(text: str) -> list[Span]:
    """API keys (known vendor shapes) and bearer / JWT tokens."""
    out: list[Span] = []
    for category, pattern in _SECRETS:
        out.extend(_scan(category, pattern, text))
    return out


def detect_other(text: str) -> list[Span]:
    """Catch-all for long hex (≥32) or base64-looking (≥40) runs."""
    return [
        *_scan(Category.OTHER, _HEX_RUN, text),
        *_scan(Category.OTHER, _BASE64_RUN, text),
    ]


# Order matters: it is the final tie-break when priority and length are equal.
DETECTORS: list[Callable[[str], list[Span]]] = [
    detect_secrets,
    detect_credit_cards,
    detect_ibans,
    detect_ribs,
    detect_bics,
    detect_vats,
    detect_sirets,
    detect_sirens,
    detect_emails,
    detect_phones,
    detect_addresses,
    detect_organizations,
    detect_full_names,
    detect_other,
]


def detect_all(text: str) -> list[Span]:
    """Run every detector and concatenate the raw candidates (overlaps kept)."""
    spans: list[Span] = []
    for detector in DETECTORS:
        spans.extend(detector(text))
    logger.debug(f"Detected {len(spans)} candidate spans in {len(text)} chars")
    return spans
