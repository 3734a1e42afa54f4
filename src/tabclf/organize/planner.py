"""Merge classifications and cluster candidates into a :class:`GroupingPlan`.

Stages run in priority order and every stage only sees tabs that no
earlier stage took:

a. category groups for the user's categories (persisted order), then for
   classifier categories the user has not defined (first-seen order);
b. project repository clusters;
c. the remaining secondary clusters, in detector order;
d. system categories (``uncategorized``) as the fallback.

A group is emitted only if it still meets its minimum size once earlier
stages have taken their tabs.  Pinned tabs and browser-internal pages
are never planned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import assert_never

from tabclf.classify.categories import CategorySet
from tabclf.core.config import SmartOrganizeConfig
from tabclf.core.defaults import (
    COMPACT_LABEL_MAX_CHARS,
    DETECTOR_MIN_CLAIM,
    LEGACY_OTHER,
    UNCATEGORIZED,
)
from tabclf.core.types import (
    GROUP_PALETTE,
    Category,
    ClassificationResult,
    GroupColor,
    GroupingPlan,
    GroupSource,
    PlannedGroup,
    TabSnapshot,
    is_uncategorized,
)
from tabclf.features.domain import domain_of, is_internal_url
from tabclf.organize.clusters import ClusterCandidate

logger = logging.getLogger(__name__)


def group_color(source: GroupSource, index: int, category: Category | None = None) -> GroupColor:
    """Colour for the *index*-th group produced by *source*."""
    palette_pick = GROUP_PALETTE[index % len(GROUP_PALETTE)]
    match source:
        case GroupSource.category:
            return category.color if category is not None else palette_pick
        case GroupSource.project:
            return GroupColor.purple
        case GroupSource.communication:
            return GroupColor.blue
        case GroupSource.media:
            return GroupColor.red
        case GroupSource.task:
            return GroupColor.yellow
        case GroupSource.shopping:
            return GroupColor.orange
        case GroupSource.research:
            return GroupColor.cyan
        case GroupSource.documentation:
            return GroupColor.green
        case GroupSource.search:
            return GroupColor.pink
        case GroupSource.domain:
            return palette_pick
        case _:
            assert_never(source)


def compact_label(name: str) -> str:
    """Initialism of *name*, at most three letters.

    A one-word name is cut to its first three characters instead.
    """
    words = [w for w in name.replace("&", " ").split() if w[:1].isalnum()]
    if len(words) <= 1:
        return name.strip()[:COMPACT_LABEL_MAX_CHARS]
    return "".join(w[0].upper() for w in words)[:COMPACT_LABEL_MAX_CHARS]


def eligible_tabs(tabs: Iterable[TabSnapshot]) -> list[TabSnapshot]:
    """Tabs the planner may place in a group."""
    return [t for t in tabs if not t.pinned and not is_internal_url(t.url)]


class _Assembler:
    """Accumulates planned groups while enforcing the partition."""

    def __init__(self, tabs: Sequence[TabSnapshot], config: SmartOrganizeConfig) -> None:
        self._config = config
        self._by_id = {t.id: t for t in tabs}
        self._taken: set[int] = set()
        self.groups: list[PlannedGroup] = []

    def add(self, label: str, color: GroupColor, tab_ids: Iterable[int], source: GroupSource, minimum: int) -> bool:
        ids = [i for i in dict.fromkeys(tab_ids) if i in self._by_id and i not in self._taken]
        if len(ids) < minimum:
            return False
        if self._config.prioritize_recent:
            ids.sort(key=lambda i: self._by_id[i].last_accessed, reverse=True)
        self._taken.update(ids)
        self.groups.append(PlannedGroup(label=label, color=color, tab_ids=ids, source=source))
        return True

    def plan(self) -> GroupingPlan:
        return GroupingPlan(groups=self.groups)


def _category_of(result: ClassificationResult | None) -> str:
    if result is None or result.category == LEGACY_OTHER:
        return UNCATEGORIZED
    return result.category


def build_plan(
    tabs: Sequence[TabSnapshot],
    classifications: Mapping[int, ClassificationResult],
    categories: CategorySet,
    clusters: Sequence[ClusterCandidate] = (),
    config: SmartOrganizeConfig | None = None,
) -> GroupingPlan:
    """Produce the ordered, non-overlapping plan for *tabs*.

    Args:
        tabs: Current tab snapshot, in window order.
        classifications: Per-tab classifier output keyed by tab id; tabs
            without an entry count as ``uncategorized``.
        categories: The user's categories (ordering, names, colours).
        clusters: Detector output from
            :func:`~tabclf.organize.clusters.detect_clusters`; ignored when
            ``enable_smart_groups`` is off.
        config: Organize settings; defaults when ``None``.
    """
    config = config or SmartOrganizeConfig()
    tabs = eligible_tabs(tabs)
    minimum = config.effective_min_group_size
    assembler = _Assembler(tabs, config)

    members: dict[str, list[int]] = {}
    for tab in tabs:
        members.setdefault(_category_of(classifications.get(tab.id)), []).append(tab.id)

    def label_for(name: str) -> str:
        return compact_label(name) if config.compact_labels else name

    # (a) user categories, then categories only the classifier knows about
    system: list[Category] = []
    for category in categories:
        if category.is_system or is_uncategorized(category.id):
            system.append(category)
            continue
        assembler.add(
            label_for(category.name),
            group_color(GroupSource.category, 0, category),
            members.get(category.id, ()),
            GroupSource.category,
            minimum,
        )
    unknown = [c for c in members if c not in categories]
    for index, category_id in enumerate(unknown):
        assembler.add(
            label_for(category_id.replace("_", " ").replace("-", " ").title()),
            group_color(GroupSource.category, index),
            members[category_id],
            GroupSource.category,
            minimum,
        )

    # (b) projects, (c) other clusters
    if config.enable_smart_groups:
        projects = [c for c in clusters if c.source is GroupSource.project]
        others = [c for c in clusters if c.source is not GroupSource.project]
        for index, candidate in enumerate([*projects, *others]):
            assembler.add(
                candidate.label,
                group_color(candidate.source, index),
                candidate.tab_ids,
                candidate.source,
                DETECTOR_MIN_CLAIM,
            )

    # (d) system categories
    for category in system:
        assembler.add(
            label_for(category.name),
            group_color(GroupSource.category, 0, category),
            members.get(category.id, ()),
            GroupSource.category,
            minimum,
        )

    plan = assembler.plan()
    logger.debug("Planned %d groups covering %d tabs", len(plan.groups), len(plan.tab_ids))
    return plan


def domain_label(domain: str, compact: bool = False) -> str:
    """*domain*, or the first three letters of its first label upper-cased."""
    if compact:
        return domain.split(".")[0].upper()[:COMPACT_LABEL_MAX_CHARS]
    return domain


def plan_by_domain(
    tabs: Sequence[TabSnapshot],
    config: SmartOrganizeConfig | None = None,
) -> GroupingPlan:
    """Simplified plan: one group per hostname shared by enough tabs."""
    config = config or SmartOrganizeConfig()
    tabs = eligible_tabs(tabs)
    assembler = _Assembler(tabs, config)

    by_domain: dict[str, list[int]] = {}
    for tab in tabs:
        domain = domain_of(tab.url)
        if domain is not None:
            by_domain.setdefault(domain, []).append(tab.id)

    index = 0
    for domain, tab_ids in by_domain.items():
        added = assembler.add(
            domain_label(domain, config.compact_labels),
            group_color(GroupSource.domain, index),
            tab_ids,
            GroupSource.domain,
            config.effective_min_group_size,
        )
        if added:
            index += 1
    return assembler.plan()
