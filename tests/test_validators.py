"""Tests for the checksum validators."""

import random
import string

import pytest

from safemask.validators import (
    iban_valid,
    luhn_valid,
    rib_valid,
    siren_valid,
    siret_valid,
    vat_format_valid,
)


# ── Luhn ─────────────────────────────────────────────────────────────

def test_luhn_valid_numbers():
    assert luhn_valid("4111111111111111")
    assert luhn_valid("79927398713")
    assert luhn_valid("4111-1111-1111-1111")


def test_luhn_rejects_bad_input():
    assert not luhn_valid("4111111111111112")
    assert not luhn_valid("")
    assert not luhn_valid(None)
    assert not luhn_valid("abc")


# ── IBAN ─────────────────────────────────────────────────────────────

def test_iban_valid():
    assert iban_valid("GB29NWBK60161331926819")
    assert iban_valid("GB29 NWBK 6016 1331 9268 19")
    assert iban_valid("FR1420041010050500013M02606")
    assert iban_valid("gb29nwbk60161331926819")


def test_iban_invalid():
    assert not iban_valid("GB28NWBK60161331926819")
    assert not iban_valid("GB29")
    assert not iban_valid(None)


# ── RIB / SIREN / SIRET ──────────────────────────────────────────────

def test_rib_key():
    assert rib_valid("30004 00823 00010123456 23")
    assert rib_valid("300040082300010123456 23")
    assert not rib_valid("30004 00823 00010123456 24")
    assert not rib_valid("3000400823")


def test_siren():
    assert siren_valid("732829320")
    assert siren_valid("732 829 320")
    assert not siren_valid("732829321")
    assert not siren_valid("73282932")


def test_siret():
    assert siret_valid("73282932000074")
    assert not siret_valid("73282932000075")
    assert not siret_valid("732829320")


# ── VAT ──────────────────────────────────────────────────────────────

def test_vat_format():
    assert vat_format_valid("DE123456789")
    assert vat_format_valid("FR12345678901")
    assert vat_format_valid("ATU12345678")
    assert vat_format_valid("NL123456789B01")


def test_vat_format_rejects():
    assert not vat_format_valid("DE12345")
    assert not vat_format_valid("XX123456789")
    assert not vat_format_valid("")
    assert not vat_format_valid(None)


# ── Properties ───────────────────────────────────────────────────────

def _luhn_reference(digits):
    checksum = 0
    for i, ch in enumerate(digits[::-1]):
        n = int(ch) * (2 if i % 2 else 1)
        checksum += sum(int(d) for d in str(n))
    return checksum % 10 == 0


def test_luhn_matches_reference():
    rng = random.Random(20240611)
    for _ in range(2000):
        digits = "".join(rng.choice("0123456789") for _ in range(rng.randint(13, 19)))
        assert luhn_valid(digits) == _luhn_reference(digits), digits


@pytest.mark.parametrize("iban", ["GB29NWBK60161331926819", "FR1420041010050500013M02606"])
def test_iban_any_single_substitution_fails(iban):
    for i, ch in enumerate(iban):
        pool = string.digits if ch.isdigit() else string.ascii_uppercase
        for other in pool:
            if other == ch:
                continue
            altered = iban[:i] + other + iban[i + 1:]
            assert not iban_valid(altered), altered
