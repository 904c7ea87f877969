"""Text similarity helpers (core domain)."""

from __future__ import annotations

import re
from collections import Counter


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def tokenize(text: str) -> list[str]:
    """Lower-cased whitespace tokens."""

    collapsed = _collapse_whitespace(text).lower()
    return collapsed.split(" ") if collapsed else []


def similarity(first: str, second: str) -> float:
    """Dice coefficient over token multisets: ``2*|A & B| / (|A| + |B|)``."""

    tokens_a = tokenize(first)
    tokens_b = tokenize(second)
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    common = sum((Counter(tokens_a) & Counter(tokens_b)).values())
    return 2 * common / (len(tokens_a) + len(tokens_b))
