"""Word-level diff between original and transformed text, for review.

Both strings are split on whitespace with the whitespace runs kept as
tokens, so concatenating tokens reproduces the input exactly.
"""

from __future__ import annotations
import html
import re
from typing import Literal

Op = Literal["equal", "delete", "insert"]

_SPLIT = re.compile(r"(\s+)")


def tokenize(s: str) -> list[str]:
    return [t for t in _SPLIT.split(s or "") if t]


def diff_tokens(original: str, transformed: str) -> list[tuple[Op, str]]:
    """LCS alignment of the two token sequences.

    Backtracking prefers a match, then a deletion, then an insertion.
    """
    a, b = tokenize(original), tokenize(transformed)
    n, m = len(a), len(b)
    # dp[i][j] = LCS length of a[i:] and b[j:]
    dp = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if a[i] == b[j]:
                dp[i][j] = dp[i + 1][j + 1] + 1
            else:
                dp[i][j] = max(dp[i + 1][j], dp[i][j + 1])

    ops: list[tuple[Op, str]] = []
    i = j = 0
    while i < n and j < m:
        if a[i] == b[j]:
            ops.append(("equal", a[i]))
            i += 1
            j += 1
        elif dp[i + 1][j] >= dp[i][j + 1]:
            ops.append(("delete", a[i]))
            i += 1
        else:
            ops.append(("insert", b[j]))
            j += 1
    ops.extend(("delete", t) for t in a[i:])
    ops.extend(("insert", t) for t in b[j:])
    return ops


def diff_html(original: str, transformed: str) -> str:
    """HTML rendering: deletions in ``sm-del`` spans, insertions in ``sm-ins``."""
    out: list[str] = []
    for op, token in diff_tokens(original, transformed):
        escaped = html.escape(token, quote=True)
        if op == "equal":
            out.append(escaped)
        elif op == "delete":
            out.append(f'<span class="sm-del">{escaped}</span>')
        else:
            out.append(f'<span class="sm-ins">{escaped}</span>')
    return "".join(out)
