"""Checksum validators.

All validators are pure and total: malformed input (including ``None``)
simply fails validation, nothing here ever raises.
"""

from __future__ import annotations
import re

_NON_DIGIT = re.compile(r"\D+")
_WHITESPACE = re.compile(r"\s+")
_IBAN_SHAPE = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{11,30}")
_RIB_SHAPE = re.compile(r"(\d{5})(\d{5})([A-Za-z0-9]{11})(\d{2})")

# EU VAT number structures, keyed by country prefix (Greece uses "EL").
VAT_FORMATS: dict[str, str] = {
    "AT": r"ATU\d{8}",
    "BE": r"BE0?\d{9}",
    "BG": r"BG\d{9,10}",
    "CY": r"CY\d{8}[A-Z]",
    "CZ": r"CZ\d{8,10}",
    "DE": r"DE\d{9}",
    "DK": r"DK\d{8}",
    "EE": r"EE\d{9}",
    "EL": r"EL\d{9}",
    "ES": r"ES[A-Z0-9]\d{7}[A-Z0-9]",
    "FI": r"FI\d{8}",
    "FR": r"FR[0-9A-Z]{2}\d{9}",
    "GB": r"GB(?:\d{9}|\d{12}|GD\d{3}|HA\d{3})",
    "HR": r"HR\d{11}",
    "HU": r"HU\d{8}",
    "IE": r"IE\d[A-Z0-9]\d{5}[A-Z]{1,2}",
    "IT": r"IT\d{11}",
    "LT": r"LT\d{9,12}",
    "LU": r"LU\d{8}",
    "LV": r"LV\d{11}",
    "MT": r"MT\d{8}",
    "NL": r"NL\d{9}B\d{2}",
    "PL": r"PL\d{10}",
    "PT": r"PT\d{9}",
    "RO": r"RO\d{2,10}",
    "SE": r"SE\d{12}",
    "SI": r"SI\d{8}",
    "SK": r"SK\d{10}",
}


def _letters_to_digits(s: str) -> str:
    """A → 10, B → 11, … Z → 35 (``ord(c) - 55``)."""
    return "".join(str(ord(c) - 55) if "A" <= c <= "Z" else c for c in s)


def luhn_valid(number: str | None) -> bool:
    """Luhn mod-10 check over the digits of ``number`` (separators ignored)."""
    digits = _NON_DIGIT.sub("", number or "")
    if not digits:
        return False
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def iban_valid(iban: str | None) -> bool:
    """ISO 13616 mod-97 check.

    Country code and check digits move to the end, letters become two-digit
    numbers, and the resulting decimal string is reduced mod 97 seven digits
    at a time.  Valid iff the remainder is 1.
    """
    s = _WHITESPACE.sub("", iban or "").upper()
    if not _IBAN_SHAPE.fullmatch(s):
        return False
    converted = _letters_to_digits(s[4:] + s[:4])
    remainder = 0
    for i in range(0, len(converted), 7):
        remainder = int(str(remainder) + converted[i:i + 7]) % 97
    return remainder == 1


def rib_valid(rib: str | None) -> bool:
    """French RIB key check: ``97 - (bank·branch·account mod 97) == key``."""
    compact = _WHITESPACE.sub("", rib or "")
    m = _RIB_SHAPE.fullmatch(compact)
    if not m:
        return False
    bank, branch, account, key = m.groups()
    base = re.sub(r"[^0-9]", "0", _letters_to_digits((bank + branch + account).upper()))
    return 97 - (int(base) % 97) == int(key)


def siren_valid(siren: str | None) -> bool:
    digits = _NON_DIGIT.sub("", siren or "")
    return len(digits) == 9 and luhn_valid(digits)


def siret_valid(siret: str | None) -> bool:
    digits = _NON_DIGIT.sub("", siret or "")
    return len(digits) == 14 and luhn_valid(digits)


def vat_format_valid(vat: str | None) -> bool:
    """Structural check against the EU VAT formats in ``VAT_FORMATS``.

    Only the shape is verified.  Check digits are country-specific (the
    French key, for instance, depends on the SIREN) and are not recomputed,
    so a well-formed number is never rejected.
    """
    v = _WHITESPACE.sub("", vat or "").upper()
    fmt = VAT_FORMATS.get(v[:2])
    return fmt is not None and re.fullmatch(fmt, v) is not None
