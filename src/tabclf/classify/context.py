"""Session-context vote: infer a tab's category from the tabs around it."""

from __future__ import annotations

from tabclf.classify.patterns import PatternStore
from tabclf.core.defaults import (
    CONTEXT_MAX_CONFIDENCE,
    CONTEXT_VOTE_WEIGHT,
    UNCATEGORIZED,
)
from tabclf.core.types import ClassificationResult, TabContext
from tabclf.features.domain import domain_of


def classify_by_context(context: TabContext, patterns: PatternStore) -> ClassificationResult:
    """Let every other session tab vote with its domain's learned category.

    Each tab with a learned domain casts one vote for that domain's most
    frequent category.  The winner (first to reach the top count) gets
    ``min(votes / len(session_tabs) * 0.8, 0.8)``.  The tab being
    classified does not vote but still counts in the denominator.
    """
    votes: dict[str, int] = {}
    for other in context.session_tabs:
        if other.id == context.tab.id or not other.url:
            continue
        domain = domain_of(other.url)
        if domain is None:
            continue
        category = patterns.most_frequent_category(domain)
        if category is not None:
            votes[category] = votes.get(category, 0) + 1

    if not votes:
        return ClassificationResult(
            category=UNCATEGORIZED,
            confidence=0.0,
            reasoning="No context available",
            source="context",
        )

    dominant, count = UNCATEGORIZED, 0
    for category, n in votes.items():
        if n > count:
            dominant, count = category, n

    confidence = min(
        count / len(context.session_tabs) * CONTEXT_VOTE_WEIGHT,
        CONTEXT_MAX_CONFIDENCE,
    )
    return ClassificationResult(
        category=dominant,
        confidence=confidence,
        reasoning=f"Based on {count} related tabs in current session",
        source="context",
    )
