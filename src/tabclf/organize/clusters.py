"""Claim-based secondary cluster detectors.

Each detector looks at the tabs nobody has claimed yet and proposes
clusters of related tabs.  Detectors run in a fixed order (most specific
first) and share one ``claimed`` set: a detector adds tab ids to it only
for the clusters it actually emits, and it emits a cluster only when the
cluster holds at least two tabs.  A tab that would end up alone is left
unclaimed so a later detector (or the category fallback) can take it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Final
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel, Field

from tabclf.core.defaults import DETECTOR_MIN_CLAIM, SATELLITE_MIN_OVERLAP
from tabclf.core.types import GroupSource, TabSnapshot
from tabclf.features.domain import domain_of, matches_domain
from tabclf.features.text import extract_keywords, jaccard, main_keywords

logger = logging.getLogger(__name__)


class ClusterCandidate(BaseModel, frozen=True):
    """A group proposed by one detector."""

    label: str = Field(min_length=1)
    tab_ids: list[int] = Field(min_length=DETECTOR_MIN_CLAIM)
    source: GroupSource


Detector = Callable[[Sequence[TabSnapshot], set[int]], list[ClusterCandidate]]


def _unclaimed(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[TabSnapshot]:
    return [t for t in tabs if t.id not in claimed and t.url]


def _on_any(tab: TabSnapshot, domains: Sequence[str]) -> bool:
    domain = domain_of(tab.url)
    return domain is not None and any(matches_domain(domain, d) for d in domains)


def _emit(
    buckets: dict[str, list[int]],
    label_for: Callable[[str], str],
    source: GroupSource,
    claimed: set[int],
) -> list[ClusterCandidate]:
    """Turn ``key -> tab ids`` buckets into candidates, claiming emitted ids."""
    out: list[ClusterCandidate] = []
    for key, tab_ids in buckets.items():
        if len(tab_ids) < DETECTOR_MIN_CLAIM:
            continue
        claimed.update(tab_ids)
        out.append(ClusterCandidate(label=label_for(key), tab_ids=tab_ids, source=source))
    return out


# ---------------------------------------------------------------------------
# Project repositories
# ---------------------------------------------------------------------------

_CODE_HOSTS: Final[dict[str, str]] = {
    "github.com": "GH",
    "gitlab.com": "GL",
    "bitbucket.org": "BB",
}

_REPO_PATH: Final[re.Pattern[str]] = re.compile(r"^/([^/]+)/([^/]+)")

# Top-level paths on code hosts that are site pages, not owners.
_RESERVED_OWNERS: Final[frozenset[str]] = frozenset({
    "settings", "orgs", "marketplace", "notifications", "explore", "topics",
    "login", "features", "pulls", "issues", "sponsors",
})


def project_key(url: str) -> str | None:
    """``"GH: owner/repo"``-style key for a repository URL, else ``None``."""
    domain = domain_of(url)
    prefix = _CODE_HOSTS.get(domain or "")
    if prefix is None:
        return None
    match = _REPO_PATH.match(urlsplit(url).path)
    if match is None:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[:-4]
    if owner.lower() in _RESERVED_OWNERS or not repo:
        return None
    return f"{prefix}: {owner}/{repo}"


def detect_projects(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    buckets: dict[str, list[int]] = {}
    for tab in _unclaimed(tabs, claimed):
        key = project_key(tab.url)
        if key is not None:
            buckets.setdefault(key, []).append(tab.id)
    return _emit(buckets, lambda key: key, GroupSource.project, claimed)


# ---------------------------------------------------------------------------
# Allowlist detectors
# ---------------------------------------------------------------------------

COMMUNICATION_DOMAINS: Final[tuple[str, ...]] = (
    "gmail.com", "mail.google.com", "outlook.com", "outlook.live.com",
    "mail.yahoo.com", "slack.com", "discord.com", "telegram.org",
)
VIDEO_DOMAINS: Final[tuple[str, ...]] = ("youtube.com", "netflix.com", "twitch.tv", "vimeo.com")
AUDIO_DOMAINS: Final[tuple[str, ...]] = ("spotify.com", "soundcloud.com")
TASK_DOMAINS: Final[tuple[str, ...]] = (
    "trello.com", "asana.com", "todoist.com", "notion.so",
    "monday.com", "clickup.com", "jira.atlassian.com",
)
SHOPPING_DOMAINS: Final[tuple[str, ...]] = (
    "amazon.com", "ebay.com", "aliexpress.com", "shopify.com", "etsy.com",
)
RESEARCH_DOMAINS: Final[tuple[str, ...]] = (
    "wikipedia.org", "arxiv.org", "scholar.google.com", "medium.com", "dev.to",
)


def _allowlist_detector(
    domains: Sequence[str], label: str, source: GroupSource
) -> Detector:
    def detect(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
        ids = [t.id for t in _unclaimed(tabs, claimed) if _on_any(t, domains)]
        return _emit({label: ids}, lambda key: key, source, claimed)

    detect.__name__ = f"detect_{source}"
    return detect


detect_communication = _allowlist_detector(
    COMMUNICATION_DOMAINS, "💬 Communications", GroupSource.communication
)
detect_tasks = _allowlist_detector(TASK_DOMAINS, "📋 Task Management", GroupSource.task)


def detect_media(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    """Video and audio tabs form separate clusters."""
    pending = _unclaimed(tabs, claimed)
    buckets = {
        "🎬 Video Streaming": [t.id for t in pending if _on_any(t, VIDEO_DOMAINS)],
        "🎵 Music & Audio": [t.id for t in pending if _on_any(t, AUDIO_DOMAINS)],
    }
    return _emit(buckets, lambda key: key, GroupSource.media, claimed)


# ---------------------------------------------------------------------------
# Shopping
# ---------------------------------------------------------------------------

PRODUCT_FAMILIES: Final[dict[str, tuple[str, ...]]] = {
    "laptop": ("laptop", "notebook", "macbook", "thinkpad"),
    "phone": ("phone", "iphone", "samsung", "pixel", "mobile"),
    "headphones": ("headphones", "earbuds", "airpods", "audio"),
    "monitor": ("monitor", "display", "screen", "4k", "ultrawide"),
    "keyboard": ("keyboard", "mechanical", "keys", "typing"),
    "mouse": ("mouse", "gaming", "wireless", "bluetooth"),
}

_GENERIC_SHOPPING: Final[str] = ""

# Whole words with an optional plural, so "headphones" is not a "phone".
_FAMILY_PATTERNS: Final[dict[str, re.Pattern[str]]] = {
    family: re.compile(r"\b(?:" + "|".join(map(re.escape, words)) + r")s?\b")
    for family, words in PRODUCT_FAMILIES.items()
}


def product_family(title: str) -> str | None:
    """First product family with a whole-word keyword in *title*."""
    lowered = title.lower()
    for family, pattern in _FAMILY_PATTERNS.items():
        if pattern.search(lowered):
            return family
    return None


def detect_shopping(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    """One cluster per product family; family-less shop tabs share a generic one."""
    buckets: dict[str, list[int]] = {}
    for tab in _unclaimed(tabs, claimed):
        if _on_any(tab, SHOPPING_DOMAINS):
            family = product_family(tab.title) or _GENERIC_SHOPPING
            buckets.setdefault(family, []).append(tab.id)
    return _emit(
        buckets,
        lambda family: f"🛒 Shopping: {family}" if family else "🛒 Shopping",
        GroupSource.shopping,
        claimed,
    )


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------


def detect_research(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    """Reference / long-form reading tabs, labelled after the first one's topic."""
    pending = [t for t in _unclaimed(tabs, claimed) if _on_any(t, RESEARCH_DOMAINS)]
    if not pending:
        return []
    topic = main_keywords(pending[0].title, n=2)
    label = f"🔬 Research: {topic}" if topic else "🔬 Research"
    return _emit({label: [t.id for t in pending]}, lambda key: key, GroupSource.research, claimed)


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------

TECHNOLOGIES: Final[tuple[str, ...]] = (
    "React", "Vue", "Angular", "Node.js", "Python", "JavaScript", "TypeScript",
    "Docker", "Kubernetes", "AWS", "Azure", "Git", "MongoDB", "PostgreSQL",
    "Redis", "GraphQL", "REST API",
)

_TECH_PATTERNS: Final[tuple[tuple[str, re.Pattern[str]], ...]] = tuple(
    (tech, re.compile(rf"(?<![a-z0-9]){re.escape(tech.lower())}(?![a-z0-9])"))
    for tech in TECHNOLOGIES
)

_DOC_HOST_PREFIXES: Final[tuple[str, ...]] = ("docs.", "developer.", "api.", "wiki.")
_DOC_HOSTS: Final[tuple[str, ...]] = ("readthedocs.io", "readthedocs.org", "npmjs.com", "pypi.org")
_DOC_PATH_MARKERS: Final[tuple[str, ...]] = ("/docs/", "/documentation/")


def is_documentation(url: str) -> bool:
    domain = domain_of(url)
    if domain is None:
        return False
    if domain.startswith(_DOC_HOST_PREFIXES) or any(matches_domain(domain, d) for d in _DOC_HOSTS):
        return True
    path = urlsplit(url).path.lower() + "/"
    return any(marker in path for marker in _DOC_PATH_MARKERS)


def technology_of(title: str, url: str) -> str | None:
    text = f"{title} {url}".lower()
    for tech, pattern in _TECH_PATTERNS:
        if pattern.search(text):
            return tech
    return None


def detect_documentation(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    """Doc pages grouped by technology.

    A doc page with no recognizable technology joins the technology group
    whose first page's title it overlaps most, provided the overlap is at
    least 0.3.
    """
    docs = [t for t in _unclaimed(tabs, claimed) if is_documentation(t.url)]
    buckets: dict[str, list[TabSnapshot]] = {}
    orphans: list[TabSnapshot] = []
    for tab in docs:
        tech = technology_of(tab.title, tab.url)
        if tech is None:
            orphans.append(tab)
        else:
            buckets.setdefault(tech, []).append(tab)

    anchors = {tech: extract_keywords(members[0].title) for tech, members in buckets.items()}
    for tab in orphans:
        words = extract_keywords(tab.title)
        best_tech, best_overlap = None, 0.0
        for tech, anchor_words in anchors.items():
            overlap = jaccard(words, anchor_words)
            if overlap >= SATELLITE_MIN_OVERLAP and overlap > best_overlap:
                best_tech, best_overlap = tech, overlap
        if best_tech is not None:
            buckets[best_tech].append(tab)

    return _emit(
        {tech: [t.id for t in members] for tech, members in buckets.items()},
        lambda tech: f"📚 {tech} Docs",
        GroupSource.documentation,
        claimed,
    )


# ---------------------------------------------------------------------------
# Search context
# ---------------------------------------------------------------------------

_SEARCH_ENGINES: Final[dict[str, str]] = {
    "google.com": "/search",
    "bing.com": "/search",
    "duckduckgo.com": "/",
}


def search_query(url: str) -> str | None:
    """The ``q`` parameter of a search-engine results page, else ``None``."""
    domain = domain_of(url)
    if domain is None:
        return None
    parts = urlsplit(url)
    for engine, path in _SEARCH_ENGINES.items():
        if matches_domain(domain, engine) and parts.path.startswith(path):
            values = parse_qs(parts.query).get("q")
            if values and values[0].strip():
                return values[0].strip()
    return None


def is_search_anchor(url: str) -> bool:
    if search_query(url) is not None:
        return True
    domain = domain_of(url)
    return (
        domain is not None
        and matches_domain(domain, "stackoverflow.com")
        and urlsplit(url).path.startswith("/questions/")
    )


def detect_search(tabs: Sequence[TabSnapshot], claimed: set[int]) -> list[ClusterCandidate]:
    """Search results / Q&A pages plus the unclaimed tabs whose titles match them.

    Satellites need a title overlap of at least 0.3 with the anchor and
    are ordered by overlap, highest first.
    """
    out: list[ClusterCandidate] = []
    for anchor in _unclaimed(tabs, claimed):
        if anchor.id in claimed or not is_search_anchor(anchor.url):
            continue
        anchor_words = extract_keywords(anchor.title)
        scored: list[tuple[float, int]] = []
        for tab in _unclaimed(tabs, claimed):
            if tab.id == anchor.id:
                continue
            overlap = jaccard(anchor_words, extract_keywords(tab.title))
            if overlap >= SATELLITE_MIN_OVERLAP:
                scored.append((overlap, tab.id))
        if not scored:
            continue
        scored.sort(key=lambda item: item[0], reverse=True)
        keyword = search_query(anchor.url) or main_keywords(anchor.title)
        label = f"🔍 Search: {keyword}" if keyword else "🔍 Search"
        out.extend(
            _emit(
                {label: [anchor.id, *(tab_id for _, tab_id in scored)]},
                lambda key: key,
                GroupSource.search,
                claimed,
            )
        )
    return out


# Most specific first.
DETECTORS: Final[tuple[Detector, ...]] = (
    detect_projects,
    detect_communication,
    detect_media,
    detect_tasks,
    detect_shopping,
    detect_research,
    detect_documentation,
    detect_search,
)


def detect_clusters(
    tabs: Sequence[TabSnapshot],
    claimed: set[int] | None = None,
) -> list[ClusterCandidate]:
    """Run every detector in :data:`DETECTORS` order over *tabs*.

    Args:
        tabs: Tabs eligible for clustering.
        claimed: Tab ids already taken; updated in place.  A fresh set
            is used when ``None``.

    Returns:
        Candidates in detector order, then discovery order.
    """
    claimed = set() if claimed is None else claimed
    candidates: list[ClusterCandidate] = []
    for detector in DETECTORS:
        found = detector(tabs, claimed)
        if found:
            logger.debug("%s emitted %d clusters", detector.__name__, len(found))
        candidates.extend(found)
    return candidates
