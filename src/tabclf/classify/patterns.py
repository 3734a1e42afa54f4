"""Per-domain learned statistics and the learned-category scorer.

The :class:`PatternStore` is the only engine state that outlives a run.
It is loaded from the key-value store once per pipeline run and written
back only by :meth:`PatternStore.record` callers (the learning entry
point).  On disk it keeps the host's JSON shape::

    userPatterns:    {domain: {domain, categories, timePatterns, contextPatterns}}
    categoryHistory: {category: [domain, ...]}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from tabclf.core.defaults import (
    CONTEXT_DOMAIN_CAP,
    KEY_CATEGORY_HISTORY,
    KEY_USER_PATTERNS,
    LEARNED_COOCCURRENCE_WEIGHT,
    LEARNED_MAX_CONFIDENCE,
    LEARNED_TIME_WEIGHT,
    MAX_ALTERNATIVES,
    UNCATEGORIZED,
)
from tabclf.core.store import KeyValueStore
from tabclf.core.types import Alternative, ClassificationResult, TimeOfDay

logger = logging.getLogger(__name__)


class UserPattern(BaseModel):
    """Learned statistics for one domain.

    Counts only ever grow.  ``context_patterns`` maps a category to the
    domains that were open alongside this one when it was assigned there,
    most recent last.
    """

    category_counts: dict[str, int] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("category_counts", "categories"),
        serialization_alias="categories",
    )
    time_patterns: dict[str, int] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("time_patterns", "timePatterns"),
        serialization_alias="timePatterns",
    )
    context_patterns: dict[str, list[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("context_patterns", "contextPatterns"),
        serialization_alias="contextPatterns",
    )

    @property
    def total_count(self) -> int:
        return sum(self.category_counts.values())

    def most_frequent_category(self) -> str | None:
        """Highest-count category; the first one seen wins ties."""
        best: str | None = None
        best_count = 0
        for category, count in self.category_counts.items():
            if count > best_count:
                best, best_count = category, count
        return best


def _remember(domains: list[str], new: Iterable[str], cap: int) -> list[str]:
    """Append *new* to *domains*, moving repeats to the end, keeping the last *cap*."""
    for domain in new:
        if domain in domains:
            domains.remove(domain)
        domains.append(domain)
    return domains[-cap:]


def score_learned(
    pattern: UserPattern,
    time_of_day: TimeOfDay,
    session_domains: set[str],
) -> ClassificationResult:
    """Score every category *pattern* has seen for the current context.

    ``score = count * (1 + time_boost * 0.5) * (1 + co_boost * 0.3)`` where
    ``time_boost`` is the share of assignments made at this time of day
    and ``co_boost`` the share of *session_domains* previously seen next
    to this domain under the category.
    """
    total = pattern.total_count
    if total == 0:
        return ClassificationResult(
            category=UNCATEGORIZED,
            confidence=0.0,
            reasoning="No learned patterns",
            source="learned",
        )

    time_boost = pattern.time_patterns.get(time_of_day, 0) / total
    scores: dict[str, float] = {}
    for category, count in pattern.category_counts.items():
        co_boost = 0.0
        if session_domains:
            common = set(pattern.context_patterns.get(category, ())) & session_domains
            co_boost = len(common) / len(session_domains)
        scores[category] = (
            count
            * (1 + time_boost * LEARNED_TIME_WEIGHT)
            * (1 + co_boost * LEARNED_COOCCURRENCE_WEIGHT)
        )

    best_category, best_score = UNCATEGORIZED, 0.0
    for category, score in scores.items():
        if score > best_score:
            best_category, best_score = category, score

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    alternatives = [
        Alternative(category=c, confidence=min(s / total, LEARNED_MAX_CONFIDENCE))
        for c, s in ranked[:MAX_ALTERNATIVES]
    ]
    return ClassificationResult(
        category=best_category,
        confidence=min(best_score / total, LEARNED_MAX_CONFIDENCE),
        reasoning=f"Learned from {total} past interactions",
        alternatives=alternatives,
        source="learned",
    )


class PatternStore:
    """Domain-keyed :class:`UserPattern` map plus category membership history.

    Args:
        patterns: Existing patterns keyed by normalized domain.
        history: Category id -> domains ever assigned to it (no repeats).
    """

    def __init__(
        self,
        patterns: dict[str, UserPattern] | None = None,
        history: dict[str, list[str]] | None = None,
    ) -> None:
        self._patterns: dict[str, UserPattern] = dict(patterns or {})
        self._history: dict[str, list[str]] = {k: list(v) for k, v in (history or {}).items()}

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, domain: object) -> bool:
        return domain in self._patterns

    def __iter__(self) -> Iterator[tuple[str, UserPattern]]:
        return iter(self._patterns.items())

    def get(self, domain: str) -> UserPattern | None:
        return self._patterns.get(domain)

    @property
    def history(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._history.items()}

    def most_frequent_category(self, domain: str) -> str | None:
        pattern = self._patterns.get(domain)
        return pattern.most_frequent_category() if pattern else None

    def category_totals(self) -> dict[str, int]:
        """Sum of learned assignments per category across every domain."""
        totals: dict[str, int] = {}
        for pattern in self._patterns.values():
            for category, count in pattern.category_counts.items():
                totals[category] = totals.get(category, 0) + count
        return totals

    def record(
        self,
        domain: str,
        category: str,
        *,
        time_of_day: TimeOfDay | None = None,
        co_domains: Iterable[str] = (),
    ) -> UserPattern:
        """Apply one learning event in memory and return the updated pattern.

        Time-of-day and co-occurrence data are only recorded when a
        *time_of_day* is supplied (i.e. the caller had a session context).
        """
        pattern = self._patterns.setdefault(domain, UserPattern())
        pattern.category_counts[category] = pattern.category_counts.get(category, 0) + 1

        if time_of_day is not None:
            key = str(time_of_day)
            pattern.time_patterns[key] = pattern.time_patterns.get(key, 0) + 1
            related = [d for d in co_domains if d and d != domain]
            current = pattern.context_patterns.get(category, [])
            pattern.context_patterns[category] = _remember(current, related, CONTEXT_DOMAIN_CAP)

        members = self._history.setdefault(category, [])
        if domain not in members:
            members.append(domain)
        return pattern

    # -- serialization -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Host-compatible JSON view: ``{"userPatterns": ..., "categoryHistory": ...}``."""
        return {
            KEY_USER_PATTERNS: {
                domain: {"domain": domain, **pattern.model_dump(by_alias=True)}
                for domain, pattern in self._patterns.items()
            },
            KEY_CATEGORY_HISTORY: self.history,
        }

    @classmethod
    def from_dict(
        cls,
        user_patterns: dict[str, Any] | None,
        category_history: dict[str, list[str]] | None = None,
    ) -> PatternStore:
        """Rebuild from stored JSON, skipping entries that fail validation."""
        patterns: dict[str, UserPattern] = {}
        for domain, raw in (user_patterns or {}).items():
            try:
                patterns[domain] = UserPattern.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping invalid learned pattern for domain=%s", domain)
        return cls(patterns, category_history or {})

    @classmethod
    def load(cls, store: KeyValueStore) -> PatternStore:
        return cls.from_dict(
            store.get(KEY_USER_PATTERNS),
            store.get(KEY_CATEGORY_HISTORY),
        )

    def save(self, store: KeyValueStore) -> None:
        data = self.to_dict()
        store.set(KEY_USER_PATTERNS, data[KEY_USER_PATTERNS])
        store.set(KEY_CATEGORY_HISTORY, data[KEY_CATEGORY_HISTORY])
