"""Layered tab classifier.

Signals are tried in strict priority order; the first one whose
confidence clears its threshold decides the category:

1. explicit domain mapping (always 1.0)
2. learned pattern for the domain (> 0.7)
3. vote of the other tabs in the session (> 0.6)
4. content heuristic over URL and title (> 0.5)
5. the user's category rules: domain list (0.4), then keyword (0.35)
6. static fallback domain table (0.4), else ``uncategorized`` (0.3)

Layers 1 and 5 are skipped when the user turned off
``respect_user_categories``.  Classification never raises: a tab whose
URL is empty or has no hostname is ``uncategorized``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from tabclf.classify.categories import (
    CategorySet,
    load_categories_from_store,
    load_mapping_from_store,
)
from tabclf.classify.content import classify_content
from tabclf.classify.context import classify_by_context
from tabclf.classify.patterns import PatternStore, UserPattern, score_learned
from tabclf.core.defaults import (
    CATEGORY_DOMAIN_CONFIDENCE,
    CATEGORY_KEYWORD_CONFIDENCE,
    CONTENT_THRESHOLD,
    CONTEXT_THRESHOLD,
    EXPLICIT_MAPPING_CONFIDENCE,
    FALLBACK_DOMAIN_CONFIDENCE,
    LEARNED_THRESHOLD,
    UNCATEGORIZED,
    UNCATEGORIZED_CONFIDENCE,
)
from tabclf.core.store import KeyValueStore
from tabclf.core.time import day_of_week, time_of_day
from tabclf.core.types import (
    CategoryMapping,
    ClassificationResult,
    TabContext,
    TabSnapshot,
)
from tabclf.core.validation import validate_category_id, validate_domain
from tabclf.features.domain import domain_of, fallback_category
from tabclf.report.insights import PatternInsights, build_insights

logger = logging.getLogger(__name__)


def build_context(
    tab: TabSnapshot,
    session_tabs: Sequence[TabSnapshot],
    now: datetime | None = None,
) -> TabContext:
    """Wrap *tab* with the time buckets of *now* and its session."""
    now = now or datetime.now()
    return TabContext(
        tab=tab,
        time_of_day=time_of_day(now),
        day_of_week=day_of_week(now),
        session_tabs=list(session_tabs),
    )


def _session_domains(tabs: Sequence[TabSnapshot]) -> list[str]:
    """Distinct hostnames of *tabs*, in tab order."""
    return list(dict.fromkeys(d for d in (domain_of(t.url) for t in tabs) if d is not None))


class ClassificationPipeline:
    """Owns the :class:`PatternStore` and runs the classification cascade.

    Call :meth:`load` once per organize run; it reads learned patterns
    (and, unless given explicitly, categories and mapping) from *store*.

    Args:
        store: Key-value store holding patterns, categories and mapping.
        categories: Fixed category set; read from *store* when ``None``.
        mapping: Fixed domain -> category overrides; read from *store*
            when ``None``.
        respect_user_categories: Consult the mapping and category rules.
        learning_enabled: When ``False``, :meth:`learn` is a no-op.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        categories: CategorySet | None = None,
        mapping: CategoryMapping | None = None,
        respect_user_categories: bool = True,
        learning_enabled: bool = True,
    ) -> None:
        self._store = store
        self._fixed_categories = categories
        self._fixed_mapping = mapping
        self.respect_user_categories = respect_user_categories
        self.learning_enabled = learning_enabled
        self._categories = categories if categories is not None else CategorySet()
        self._mapping: CategoryMapping = dict(mapping or {})
        self._patterns = PatternStore()

    @property
    def categories(self) -> CategorySet:
        return self._categories

    @property
    def patterns(self) -> PatternStore:
        return self._patterns

    def load(self) -> ClassificationPipeline:
        self._patterns = PatternStore.load(self._store)
        if self._fixed_categories is None:
            self._categories = load_categories_from_store(self._store)
        if self._fixed_mapping is None:
            self._mapping = load_mapping_from_store(self._store)
        logger.debug(
            "Loaded %d learned domains, %d categories, %d mappings",
            len(self._patterns),
            len(self._categories),
            len(self._mapping),
        )
        return self

    def classify(
        self,
        context: TabContext,
        *,
        respect_user_categories: bool | None = None,
    ) -> ClassificationResult:
        """Run the cascade for one tab.

        *respect_user_categories* overrides the instance setting for this
        call only.
        """
        respect = (
            self.respect_user_categories
            if respect_user_categories is None
            else respect_user_categories
        )
        tab = context.tab
        domain = domain_of(tab.url) if tab.url else None
        if domain is None:
            return ClassificationResult(
                category=UNCATEGORIZED,
                confidence=UNCATEGORIZED_CONFIDENCE,
                reasoning="No URL provided" if not tab.url else "URL has no hostname",
                source="none",
            )

        if respect and domain in self._mapping:
            return ClassificationResult(
                category=self._mapping[domain],
                confidence=EXPLICIT_MAPPING_CONFIDENCE,
                reasoning="User-defined category",
                source="mapping",
            )

        pattern = self._patterns.get(domain)
        if pattern is not None:
            learned = score_learned(
                pattern, context.time_of_day, set(_session_domains(context.session_tabs))
            )
            if learned.confidence > LEARNED_THRESHOLD:
                return learned

        by_context = classify_by_context(context, self._patterns)
        if by_context.confidence > CONTEXT_THRESHOLD:
            return by_context

        by_content = classify_content(tab)
        if by_content.confidence > CONTENT_THRESHOLD:
            return by_content

        if respect:
            rule = self._match_category_rules(domain, tab.title)
            if rule is not None:
                return rule

        fallback = fallback_category(domain)
        if fallback is not None:
            return ClassificationResult(
                category=fallback,
                confidence=FALLBACK_DOMAIN_CONFIDENCE,
                reasoning="Basic domain matching",
                source="fallback",
            )
        return ClassificationResult(
            category=UNCATEGORIZED,
            confidence=UNCATEGORIZED_CONFIDENCE,
            reasoning="No patterns matched",
            source="none",
        )

    def _match_category_rules(self, domain: str, title: str) -> ClassificationResult | None:
        by_domain = self._categories.match_domain(domain)
        if by_domain is not None:
            return ClassificationResult(
                category=by_domain,
                confidence=CATEGORY_DOMAIN_CONFIDENCE,
                reasoning="Domain listed in category",
                source="category",
            )
        by_keyword = self._categories.match_keyword(f"{domain} {title}")
        if by_keyword is not None:
            return ClassificationResult(
                category=by_keyword,
                confidence=CATEGORY_KEYWORD_CONFIDENCE,
                reasoning="Category keyword matched",
                source="category",
            )
        return None

    def classify_tabs(
        self,
        tabs: Sequence[TabSnapshot],
        now: datetime | None = None,
        *,
        respect_user_categories: bool | None = None,
    ) -> dict[int, ClassificationResult]:
        """Classify every tab with the full tab list as its session."""
        now = now or datetime.now()
        return {
            tab.id: self.classify(
                build_context(tab, tabs, now),
                respect_user_categories=respect_user_categories,
            )
            for tab in tabs
        }

    def learn(
        self,
        domain: str,
        category_id: str,
        context: TabContext | None = None,
    ) -> UserPattern | None:
        """Record an explicit user reassignment and persist the store.

        Returns:
            The updated pattern, or ``None`` when learning is disabled.

        Raises:
            InvalidDomainError: If *domain* is not a plausible hostname.
            UnknownCategoryError: If *category_id* is not a known category.
        """
        normalized = validate_domain(domain)
        validate_category_id(category_id, self._categories.ordered_ids)
        if not self.learning_enabled:
            logger.debug("Learning disabled; ignoring reassignment of domain=%s", normalized)
            return None

        if context is not None:
            pattern = self._patterns.record(
                normalized,
                category_id,
                time_of_day=context.time_of_day,
                co_domains=_session_domains(context.session_tabs),
            )
        else:
            pattern = self._patterns.record(normalized, category_id)
        self._patterns.save(self._store)
        logger.info("Learned domain=%s -> %s", normalized, category_id)
        return pattern

    def insights(self) -> PatternInsights:
        return build_insights(self._patterns, learning_enabled=self.learning_enabled)
