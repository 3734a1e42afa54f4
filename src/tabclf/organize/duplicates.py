"""Duplicate tab detection with keep/close recommendations."""

from __future__ import annotations

from collections.abc import Sequence

from tabclf.core.defaults import DUPLICATE_TITLE_SIMILARITY
from tabclf.core.types import DuplicateGroup, TabSnapshot
from tabclf.features.domain import domain_of
from tabclf.features.text import title_similarity
from tabclf.features.urls import normalize_url


def is_duplicate(a: TabSnapshot, b: TabSnapshot) -> bool:
    """Whether *a* and *b* show the same page.

    True when the normalized URLs are equal, or when both tabs are on the
    same host and their titles are identical (non-empty) or share more
    than 80% of their keywords.
    """
    if normalize_url(a.url) == normalize_url(b.url):
        return True
    host = domain_of(a.url)
    if host is None or host != domain_of(b.url):
        return False
    if a.title and a.title == b.title:
        return True
    return title_similarity(a.title, b.title) > DUPLICATE_TITLE_SIMILARITY


def choose_kept_tab(tabs: Sequence[TabSnapshot]) -> TabSnapshot:
    """The active tab if any, else the most recently accessed one.

    Ties on ``last_accessed`` go to the earliest tab in *tabs*.
    """
    for tab in tabs:
        if tab.active:
            return tab
    return max(tabs, key=lambda t: t.last_accessed)


def find_duplicates(tabs: Sequence[TabSnapshot]) -> list[DuplicateGroup]:
    """Greedy left-to-right duplicate scan.

    Each unassigned tab becomes an anchor and collects every later
    unassigned tab that :func:`is_duplicate` pairs with it.  A tab ends up
    in at most one group; tabs without a URL are ignored.

    Returns:
        Groups in anchor order, each with at least two tabs.
    """
    assigned: set[int] = set()
    groups: list[DuplicateGroup] = []

    for i, anchor in enumerate(tabs):
        if anchor.id in assigned or not anchor.url:
            continue
        members = [anchor]
        for other in tabs[i + 1:]:
            if other.id in assigned or not other.url:
                continue
            if is_duplicate(anchor, other):
                members.append(other)
        if len(members) < 2:
            continue

        assigned.update(t.id for t in members)
        canonical = normalize_url(anchor.url)
        exact = all(normalize_url(t.url) == canonical for t in members)
        groups.append(
            DuplicateGroup(
                canonical_url=canonical,
                tabs=members,
                kind="exact" if exact else "similar",
                keep_tab_id=choose_kept_tab(members).id,
            )
        )
    return groups
