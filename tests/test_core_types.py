"""Tests for the core pydantic data contracts."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tabclf.core.types import (
    Category,
    ClassificationResult,
    DuplicateGroup,
    GroupColor,
    GroupingPlan,
    GroupSource,
    PlannedGroup,
    TabSnapshot,
    is_uncategorized,
)


class TestTabSnapshot:
    def test_accepts_host_camel_case(self) -> None:
        tab = TabSnapshot.model_validate(
            {"id": 3, "url": "https://a.com", "favIconUrl": "x.png", "lastAccessed": 12.5, "groupId": 7}
        )
        assert tab.fav_icon_url == "x.png"
        assert tab.last_accessed == 12.5
        assert tab.group_id == 7

    def test_no_group_sentinel_becomes_none(self) -> None:
        assert TabSnapshot(id=1, groupId=-1).group_id is None

    def test_is_immutable(self) -> None:
        tab = TabSnapshot(id=1)
        with pytest.raises(ValidationError):
            tab.title = "changed"  # type: ignore[misc]


class TestCategory:
    def test_domains_and_keywords_normalized(self) -> None:
        cat = Category(id="work", name="Work", domains=["WWW.GitHub.com", " "], keywords=[" API ", ""])
        assert cat.domains == ["github.com"]
        assert cat.keywords == ["api"]

    def test_unknown_color_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Category(id="x", name="X", color="magenta")

    def test_name_length_capped(self) -> None:
        with pytest.raises(ValidationError):
            Category(id="x", name="n" * 51)


class TestClassificationResult:
    def test_confidence_bounded(self) -> None:
        with pytest.raises(ValidationError):
            ClassificationResult(category="work", confidence=1.5, reasoning="")

    def test_at_most_three_alternatives(self) -> None:
        alts = [{"category": f"c{i}", "confidence": 0.1} for i in range(4)]
        with pytest.raises(ValidationError):
            ClassificationResult(category="work", confidence=0.5, reasoning="", alternatives=alts)


class TestDuplicateGroup:
    def test_keep_must_be_member(self) -> None:
        tabs = [TabSnapshot(id=1), TabSnapshot(id=2)]
        with pytest.raises(ValidationError, match="not a member"):
            DuplicateGroup(canonical_url="a.com", tabs=tabs, kind="exact", keep_tab_id=9)

    def test_close_ids_and_recommendation(self) -> None:
        tabs = [TabSnapshot(id=1), TabSnapshot(id=2, active=True), TabSnapshot(id=3)]
        group = DuplicateGroup(canonical_url="a.com", tabs=tabs, kind="exact", keep_tab_id=2)
        assert group.close_tab_ids == [1, 3]
        assert group.recommendation == "Keep the active tab and close 2 duplicates"


class TestGroupingPlan:
    def _group(self, label: str, ids: list[int]) -> PlannedGroup:
        return PlannedGroup(label=label, color=GroupColor.blue, tab_ids=ids, source=GroupSource.category)

    def test_tab_in_two_groups_rejected(self) -> None:
        with pytest.raises(ValidationError, match="more than one group"):
            GroupingPlan(groups=[self._group("A", [1, 2]), self._group("B", [2, 3])])

    def test_tab_ids_flattened_in_order(self) -> None:
        plan = GroupingPlan(groups=[self._group("A", [4, 1]), self._group("B", [2])])
        assert plan.tab_ids == [4, 1, 2]


def test_is_uncategorized() -> None:
    assert is_uncategorized("uncategorized")
    assert not is_uncategorized("other")
