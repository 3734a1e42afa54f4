"""Tests for the category taxonomy: ordering, rule matching, YAML and store I/O."""

from __future__ import annotations

from pathlib import Path

import pytest

from tabclf.classify.categories import (
    DEFAULT_CATEGORIES,
    CategorySet,
    load_categories,
    load_categories_from_store,
    load_mapping_from_store,
    save_categories,
)
from tabclf.core.defaults import KEY_CATEGORIES, KEY_CATEGORY_MAPPING
from tabclf.core.types import Category, GroupColor


class TestCategorySet:
    def test_default_order_ends_with_uncategorized(self) -> None:
        assert CategorySet().ordered_ids == [
            "work", "social", "entertainment", "shopping", "news", "uncategorized",
        ]

    def test_sorted_by_order_and_legacy_other_replaced(self) -> None:
        cats = CategorySet([
            Category(id="other", name="Other"),
            Category(id="a", name="A", order=1),
            Category(id="b", name="B", order=0),
        ])
        assert cats.ordered_ids == ["b", "a", "uncategorized"]
        assert "other" not in cats

    def test_input_order_breaks_order_ties(self) -> None:
        cats = CategorySet([Category(id="z", name="Z"), Category(id="y", name="Y")])
        assert cats.ordered_ids[:2] == ["z", "y"]

    def test_stored_uncategorized_stays_last(self) -> None:
        cats = CategorySet([
            Category(id="uncategorized", name="Uncategorized", order=-5),
            Category(id="a", name="A", order=3),
        ])
        assert cats.ordered_ids == ["a", "uncategorized"]

    def test_get_and_len(self) -> None:
        cats = CategorySet()
        assert len(cats) == len(DEFAULT_CATEGORIES)
        work = cats.get("work")
        assert work is not None and work.color is GroupColor.blue
        assert cats.get("missing") is None


class TestRuleMatching:
    def test_domain_matches_subdomains(self) -> None:
        assert CategorySet().match_domain("gist.github.com") == "work"

    def test_domain_does_not_match_suffix_only(self) -> None:
        assert CategorySet().match_domain("notgithub.com") is None

    def test_keyword_whole_word(self) -> None:
        cats = CategorySet()
        assert cats.match_keyword("Reviewing some code today") == "work"
        assert cats.match_keyword("codebase tour") is None

    def test_first_category_in_order_wins(self) -> None:
        cats = CategorySet([
            Category(id="late", name="Late", keywords=["stream"], order=2),
            Category(id="early", name="Early", keywords=["stream"], order=1),
        ])
        assert cats.match_keyword("live stream") == "early"


class TestYamlIO:
    def test_save_then_load(self, tmp_path: Path) -> None:
        path = save_categories(CategorySet(), tmp_path / "cfg" / "categories.yaml")
        loaded = load_categories(path)
        assert loaded.ordered_ids == CategorySet().ordered_ids
        assert loaded.get("news").domains == CategorySet().get("news").domains

    def test_numeric_version_accepted(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("version: 1\ncategories:\n  - id: reading\n    name: Reading\n")
        assert load_categories(path).ordered_ids == ["reading", "uncategorized"]

    def test_duplicate_ids_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text(
            "categories:\n  - {id: a, name: A}\n  - {id: a, name: Again}\n"
        )
        with pytest.raises(ValueError, match="Duplicate category ids"):
            load_categories(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_categories(tmp_path / "nope.yaml")


class TestStoreIO:
    def test_empty_store_gives_defaults(self, store) -> None:
        assert load_categories_from_store(store).ordered_ids == CategorySet().ordered_ids

    def test_host_camel_case_categories(self, store) -> None:
        store.set(KEY_CATEGORIES, [
            {"id": "reading", "name": "Reading", "color": "cyan", "domains": ["medium.com"], "order": 0},
            {"id": "uncategorized", "name": "Uncategorized", "isSystem": True, "order": 1},
        ])
        cats = load_categories_from_store(store)
        assert cats.ordered_ids == ["reading", "uncategorized"]
        assert cats.get("uncategorized").is_system is True

    def test_invalid_stored_categories_fall_back(self, store) -> None:
        store.set(KEY_CATEGORIES, [{"id": "x", "name": "X", "color": "magenta"}])
        assert load_categories_from_store(store).ordered_ids == CategorySet().ordered_ids

    def test_mapping_normalized(self, store) -> None:
        store.set(KEY_CATEGORY_MAPPING, {"WWW.GitHub.com": "work", "old.example": "other", " ": "news"})
        assert load_mapping_from_store(store) == {
            "github.com": "work",
            "old.example": "uncategorized",
        }
