"""The persisted Category taxonomy and its domain / keyword rules.

Categories are owned by the host (the options page edits them); the
engine only reads them.  This module normalizes whatever the host
stored into a :class:`CategorySet`: ordered by the persisted order
index, with the system ``uncategorized`` category always present and
always last.

Typical flow::

    categories = load_categories_from_store(store)
    categories.match_domain("docs.github.com")   # -> "work"
    categories.ordered_ids                       # [..., "uncategorized"]
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from tabclf.core.defaults import (
    KEY_CATEGORIES,
    KEY_CATEGORY_MAPPING,
    LEGACY_OTHER,
    UNCATEGORIZED,
)
from tabclf.core.store import KeyValueStore
from tabclf.core.types import Category, CategoryMapping, GroupColor
from tabclf.features.domain import matches_domain, normalize_hostname

logger = logging.getLogger(__name__)

UNCATEGORIZED_CATEGORY: Final[Category] = Category(
    id=UNCATEGORIZED,
    name="Uncategorized",
    color=GroupColor.grey,
    is_default=True,
    is_system=True,
    order=10_000,
)

DEFAULT_CATEGORIES: Final[tuple[Category, ...]] = (
    Category(
        id="work",
        name="Work",
        color=GroupColor.blue,
        domains=["github.com", "gitlab.com", "stackoverflow.com", "localhost", "vercel.app", "netlify.app"],
        keywords=["dev", "code", "api"],
        is_default=True,
        order=0,
    ),
    Category(
        id="social",
        name="Social",
        color=GroupColor.pink,
        domains=["twitter.com", "x.com", "facebook.com", "instagram.com", "linkedin.com", "discord.com"],
        keywords=["social", "chat", "message"],
        is_default=True,
        order=1,
    ),
    Category(
        id="entertainment",
        name="Entertainment",
        color=GroupColor.red,
        domains=["youtube.com", "netflix.com", "twitch.tv", "spotify.com"],
        keywords=["video", "watch", "stream", "music"],
        is_default=True,
        order=2,
    ),
    Category(
        id="shopping",
        name="Shopping",
        color=GroupColor.yellow,
        domains=["amazon.com", "ebay.com", "aliexpress.com", "shopify.com"],
        keywords=["shop", "store", "buy", "cart"],
        is_default=True,
        order=3,
    ),
    Category(
        id="news",
        name="News",
        color=GroupColor.green,
        domains=["cnn.com", "bbc.com", "reddit.com", "hackernews.com"],
        keywords=["news", "blog", "article"],
        is_default=True,
        order=4,
    ),
    UNCATEGORIZED_CATEGORY,
)


class CategoryFile(BaseModel, frozen=True):
    """On-disk YAML layout for a category taxonomy."""

    version: str = "1"
    categories: list[Category] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_ids(self) -> CategoryFile:
        counts = Counter(c.id for c in self.categories)
        dupes = sorted(i for i, n in counts.items() if n > 1)
        if dupes:
            raise ValueError(f"Duplicate category ids: {dupes}")
        return self


class CategorySet:
    """Read-only, ordered view over the user's categories.

    Categories are sorted by ``(is_system, order)`` with input order as the
    final tie-break, so system categories land last.  A legacy ``other``
    category is dropped in favour of ``uncategorized``, which is added
    when missing.

    Args:
        categories: Categories as stored by the host, in any order.
    """

    def __init__(self, categories: Sequence[Category] = DEFAULT_CATEGORIES) -> None:
        kept = [c for c in categories if c.id != LEGACY_OTHER]
        if not any(c.id == UNCATEGORIZED for c in kept):
            kept.append(UNCATEGORIZED_CATEGORY)
        indexed = sorted(
            enumerate(kept),
            key=lambda item: (item[1].is_system or item[1].id == UNCATEGORIZED, item[1].order, item[0]),
        )
        self._categories: list[Category] = [c for _, c in indexed]
        self._by_id: dict[str, Category] = {c.id: c for c in self._categories}

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def get(self, category_id: str) -> Category | None:
        return self._by_id.get(category_id)

    @property
    def ordered_ids(self) -> list[str]:
        return [c.id for c in self._categories]

    def match_domain(self, domain: str) -> str | None:
        """First category (in order) whose domain list covers *domain*."""
        for category in self._categories:
            if any(matches_domain(domain, d) for d in category.domains):
                return category.id
        return None

    def match_keyword(self, text: str) -> str | None:
        """First category with a keyword appearing as a whole word in *text*."""
        lowered = text.lower()
        for category in self._categories:
            for keyword in category.keywords:
                if re.search(rf"\b{re.escape(keyword)}\b", lowered):
                    return category.id
        return None


# ---------------------------------------------------------------------------
# YAML I/O
# ---------------------------------------------------------------------------


def load_categories(path: Path) -> CategorySet:
    """Load and validate a category taxonomy from a YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError / ValidationError: If the YAML is malformed or invalid.
    """
    raw = yaml.safe_load(path.read_text())
    if isinstance(raw, dict) and "version" in raw:
        raw["version"] = str(raw["version"])
    return CategorySet(CategoryFile.model_validate(raw).categories)


def save_categories(categories: CategorySet, path: Path) -> Path:
    data = CategoryFile(categories=list(categories)).model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path


# ---------------------------------------------------------------------------
# Key-value store I/O
# ---------------------------------------------------------------------------


def load_categories_from_store(store: KeyValueStore) -> CategorySet:
    """Categories persisted by the host, or the defaults when none are stored."""
    raw: list[dict[str, Any]] | None = store.get(KEY_CATEGORIES)
    if not raw:
        return CategorySet()
    try:
        return CategorySet([Category.model_validate(item) for item in raw])
    except ValidationError:
        logger.warning("Invalid stored categories, using defaults", exc_info=True)
        return CategorySet()


def load_mapping_from_store(store: KeyValueStore) -> CategoryMapping:
    """Explicit domain -> category overrides, normalized.

    Legacy ``other`` targets are read as ``uncategorized``.
    """
    raw: dict[str, str] = store.get(KEY_CATEGORY_MAPPING) or {}
    mapping: CategoryMapping = {}
    for domain, category_id in raw.items():
        key = normalize_hostname(domain)
        if not key:
            continue
        mapping[key] = UNCATEGORIZED if category_id == LEGACY_OTHER else category_id
    return mapping
