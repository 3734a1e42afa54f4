"""Content heuristic: regex scoring of URL + title against a fixed taxonomy.

Each category carries a short list of patterns.  A category's score is
the number of its patterns that match ``"<url> <title>"`` (lowercased);
the highest score wins, earlier categories win ties.  Confidence is
``min(score / 3, 0.7)`` so this layer can never outrank a learned or
explicit signal.
"""

from __future__ import annotations

import re
from typing import Final

from tabclf.core.defaults import (
    CONTENT_MAX_CONFIDENCE,
    CONTENT_SCORE_DIVISOR,
    UNCATEGORIZED,
)
from tabclf.core.types import ClassificationResult, TabSnapshot

# Iteration order is the tie-break order.
CONTENT_PATTERNS: Final[dict[str, tuple[re.Pattern[str], ...]]] = {
    "work": (
        re.compile(r"\b(jira|confluence|slack|teams|zoom|meet|asana|notion|trello|monday)\b"),
        re.compile(r"\b(dashboard|admin|console|analytics|reports?)\b"),
        re.compile(r"\b(project|task|ticket|issue|sprint)\b"),
    ),
    "development": (
        re.compile(r"\b(github|gitlab|bitbucket|stackoverflow|npm|pypi)\b"),
        re.compile(r"\b(code|repository|commit|pull.?request|issue)\b"),
        re.compile(r"\b(documentation|docs|api|sdk|tutorial)\b"),
        re.compile(r"localhost:\d+"),
    ),
    "social": (
        re.compile(r"\b(facebook|twitter|instagram|linkedin|reddit|discord)\b"),
        re.compile(r"\b(social|friends?|profile|timeline|feed)\b"),
    ),
    "entertainment": (
        re.compile(r"\b(youtube|netflix|spotify|twitch|hulu|disney)\b"),
        re.compile(r"\b(video|movie|music|stream|watch|listen)\b"),
    ),
    "shopping": (
        re.compile(r"\b(amazon|ebay|shopify|etsy|alibaba)\b"),
        re.compile(r"\b(shop|store|buy|cart|checkout|order)\b"),
        re.compile(r"\b(product|price|deal|discount|sale)\b"),
    ),
    "news": (
        re.compile(r"\b(news|article|blog|post)\b"),
        re.compile(r"\b(cnn|bbc|reuters|nytimes|guardian)\b"),
    ),
    "learning": (
        re.compile(r"\b(course|learn|tutorial|education|university)\b"),
        re.compile(r"\b(udemy|coursera|khan|edx|skillshare)\b"),
    ),
}


def score_content(text: str) -> dict[str, int]:
    """Number of matching patterns per taxonomy category (zeros included)."""
    lowered = text.lower()
    return {
        category: sum(1 for pattern in patterns if pattern.search(lowered))
        for category, patterns in CONTENT_PATTERNS.items()
    }


def classify_content(tab: TabSnapshot) -> ClassificationResult:
    """Score *tab* against :data:`CONTENT_PATTERNS`.

    With no matching pattern the result is ``uncategorized`` at 0.0,
    which never clears the cascade threshold.
    """
    scores = score_content(f"{tab.url} {tab.title}")

    best_category, best_score = UNCATEGORIZED, 0
    for category, score in scores.items():
        if score > best_score:
            best_category, best_score = category, score

    confidence = min(best_score / CONTENT_SCORE_DIVISOR, CONTENT_MAX_CONFIDENCE)
    return ClassificationResult(
        category=best_category,
        confidence=confidence,
        reasoning=f"Content analysis found {best_score} matching patterns",
        source="content",
    )
