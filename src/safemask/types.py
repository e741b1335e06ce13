"""Core types.

Span offsets are Python ``str`` indices, i.e. Unicode code points, and
always refer to the exact text buffer that was scanned.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class Category(str, Enum):
    """Kinds of sensitive data the detectors know about."""

    FULL_NAME = "FULL_NAME"
    ORGANIZATION = "ORGANIZATION"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    ADDRESS = "ADDRESS"
    IBAN = "IBAN"
    RIB = "RIB"
    BIC = "BIC"
    CREDIT_CARD = "CREDIT_CARD"
    SIREN = "SIREN"
    SIRET = "SIRET"
    VAT = "VAT"
    API_KEY = "API_KEY"
    TOKEN = "TOKEN"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


# Overlap tie-break weight, higher wins.
PRIORITY: dict[Category, int] = {
    Category.API_KEY: 100,
    Category.TOKEN: 100,
    Category.CREDIT_CARD: 90,
    Category.IBAN: 90,
    Category.RIB: 90,
    Category.BIC: 80,
    Category.VAT: 70,
    Category.SIREN: 70,
    Category.SIRET: 70,
    Category.EMAIL: 60,
    Category.PHONE: 60,
    Category.ADDRESS: 50,
    Category.ORGANIZATION: 40,
    Category.FULL_NAME: 30,
    Category.OTHER: 10,
}


class Mode(str, Enum):
    """What to do with a detected span."""

    IGNORE = "ignore"
    REDACT = "redact"
    PSEUDO = "pseudo"


@dataclass(frozen=True, slots=True)
class Span:
    """A typed, positioned substring: half-open ``[start, end)``."""
    type: Category
    start: int
    end: int
    value: str

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def priority(self) -> int:
        return PRIORITY.get(self.type, 0)

    def shifted(self, offset: int) -> "Span":
        """Return the same span moved by ``offset`` characters."""
        return Span(self.type, self.start + offset, self.end + offset, self.value)

    def overlaps(self, other: "Span") -> bool:
        return not (self.end <= other.start or self.start >= other.end)


@dataclass(frozen=True, slots=True)
class Replacement:
    """Audit record for one pseudonymized span."""
    type: Category
    value: str       # original text
    token: str       # issued token, e.g. "EMAIL_1A2B3C4D"


@dataclass(slots=True)
class AnonymizedText:
    """Result of anonymizing a text."""
    text: str                                           # transformed text
    replacements: list[Replacement] = field(default_factory=list)
    spans: list[Span] = field(default_factory=list)     # final span set


# Default profile used when no explicit policy is configured.
DEFAULT_MODES: dict[Category, Mode] = {
    Category.FULL_NAME: Mode.PSEUDO,
    Category.ORGANIZATION: Mode.PSEUDO,
    Category.EMAIL: Mode.PSEUDO,
    Category.PHONE: Mode.PSEUDO,
    Category.ADDRESS: Mode.PSEUDO,
    Category.IBAN: Mode.REDACT,
    Category.RIB: Mode.REDACT,
    Category.BIC: Mode.REDACT,
    Category.CREDIT_CARD: Mode.REDACT,
    Category.SIREN: Mode.PSEUDO,
    Category.SIRET: Mode.PSEUDO,
    Category.VAT: Mode.PSEUDO,
    Category.API_KEY: Mode.REDACT,
    Category.TOKEN: Mode.REDACT,
    Category.OTHER: Mode.IGNORE,
}


class Policy:
    """Total mapping Category → Mode.

    Every category gets an entry at construction time; anything the
    caller leaves out is ``Mode.IGNORE``.
    """

    __slots__ = ("_modes",)

    def __init__(self, modes: Mapping[Category | str, Mode | str] | None = None) -> None:
        self._modes: dict[Category, Mode] = {c: Mode.IGNORE for c in Category}
        for key, mode in (modes or {}).items():
            try:
                category = Category(str(key).upper())
            except ValueError:
                raise ValueError(f"Unknown category: {key!r}") from None
            try:
                self._modes[category] = Mode(str(getattr(mode, "value", mode)).lower())
            except ValueError:
                raise ValueError(f"Unknown mode for {category}: {mode!r}") from None

    @classmethod
    def default(cls) -> "Policy":
        return cls(DEFAULT_MODES)

    def mode_for(self, category: Category) -> Mode:
        return self._modes[category]

    def __getitem__(self, category: Category) -> Mode:
        return self._modes[category]

    def with_overrides(self, overrides: Mapping[Category | str, Mode | str]) -> "Policy":
        merged: dict[Category | str, Mode | str] = {c.value: m for c, m in self._modes.items()}
        merged.update({str(k).upper(): v for k, v in overrides.items()})
        return Policy(merged)

    def active(self) -> set[Category]:
        """Categories that are not ignored."""
        return {c for c, m in self._modes.items() if m is not Mode.IGNORE}

    def as_dict(self) -> dict[str, str]:
        return {c.value: m.value for c, m in self._modes.items()}

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Policy) and self._modes == other._modes

    def __repr__(self) -> str:
        return f"Policy({self.as_dict()!r})"
