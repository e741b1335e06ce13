"""Token freeze/thaw around text-in/text-out polish passes.

Grammar fixers and rewriters must never see or touch issued tokens.  Each
token is swapped for an opaque positional placeholder ``⟦Tn⟧`` before the
pass and swapped back afterwards, whatever the pass did to the rest.
"""

from __future__ import annotations
import logging
import re
from typing import Callable

from .patterns import TOKEN_PATTERN

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"⟦T(\d+)⟧")


def freeze_tokens(text: str) -> tuple[str, list[str]]:
    """Replace every token with ``⟦Tn⟧``; return the frozen text and tokens."""
    tokens: list[str] = []

    def _freeze(m: re.Match) -> str:
        tokens.append(m.group(1))
        return f"⟦T{len(tokens) - 1}⟧"

    return TOKEN_PATTERN.sub(_freeze, text), tokens


def thaw_tokens(text: str, tokens: list[str]) -> str:
    """Inverse of ``freeze_tokens``; unknown placeholders are left alone."""
    def _thaw(m: re.Match) -> str:
        i = int(m.group(1))
        return tokens[i] if i < len(tokens) else m.group(0)

    return _PLACEHOLDER.sub(_thaw, text)


def polish(text: str, *passes: Callable[[str], str]) -> str:
    """Run each pass over frozen text; a failing pass is skipped."""
    out = text
    for fn in passes:
        frozen, tokens = freeze_tokens(out)
        try:
            result = fn(frozen)
        except Exception as e:
            logger.warning(f"Polish pass {getattr(fn, '__name__', fn)!s} failed: {e}")
            continue
        if not isinstance(result, str):
            logger.warning(f"Polish pass {getattr(fn, '__name__', fn)!s} returned no text")
            continue
        out = thaw_tokens(result, tokens)
    return out
