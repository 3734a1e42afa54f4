"""Title tokenization and keyword-overlap similarity.

The same Jaccard measure is used by the duplicate detector (near-identical
titles) and by the documentation / search detectors (satellite tabs).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Final

from tabclf.core.defaults import MIN_KEYWORD_LENGTH

_STOP_WORDS: Final[frozenset[str]] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "was", "are", "were",
})

_WORD_SPLIT: Final[re.Pattern[str]] = re.compile(r"\W+")


def extract_keywords(text: str) -> list[str]:
    """Lowercase word tokens of *text*, minus stop words and short words.

    Order of first appearance is preserved; repeats are kept.
    """
    return [
        word
        for word in _WORD_SPLIT.split(text.lower())
        if len(word) >= MIN_KEYWORD_LENGTH and word not in _STOP_WORDS
    ]


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Intersection-over-union of two token collections (as sets).

    Returns 0.0 when both are empty.
    """
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def title_similarity(title_a: str, title_b: str) -> float:
    return jaccard(extract_keywords(title_a), extract_keywords(title_b))


def main_keywords(title: str, n: int = 3) -> str:
    """The first *n* distinct keywords of *title*, space-joined."""
    seen: list[str] = []
    for word in extract_keywords(title):
        if word not in seen:
            seen.append(word)
        if len(seen) == n:
            break
    return " ".join(seen)
