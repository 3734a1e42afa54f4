"""Core data contracts: tab snapshots, categories, classification results, plans."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Final, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from tabclf.core.defaults import UNCATEGORIZED
from tabclf.features.domain import normalize_hostname

# Host API sentinel for "tab is not in a group".
TAB_GROUP_ID_NONE: Final[int] = -1


class GroupColor(StrEnum):
    """Tab-group colours understood by the host.

    Closed set: the host rejects any other value, so every colour that
    reaches the execution layer must be one of these members.
    """

    grey = "grey"
    blue = "blue"
    red = "red"
    yellow = "yellow"
    green = "green"
    pink = "pink"
    purple = "purple"
    cyan = "cyan"
    orange = "orange"


# Rotation used for groups whose colour is not fixed by a category.
GROUP_PALETTE: Final[tuple[GroupColor, ...]] = (
    GroupColor.blue,
    GroupColor.red,
    GroupColor.yellow,
    GroupColor.green,
    GroupColor.pink,
    GroupColor.purple,
    GroupColor.cyan,
    GroupColor.orange,
)


class TimeOfDay(StrEnum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"
    night = "night"


class GroupSource(StrEnum):
    """Which stage of the planner produced a group.

    Member order mirrors planner merge priority for the detector stages.
    """

    category = "category"
    project = "project"
    communication = "communication"
    media = "media"
    task = "task"
    shopping = "shopping"
    research = "research"
    documentation = "documentation"
    search = "search"
    domain = "domain"


class TabSnapshot(BaseModel, frozen=True):
    """One open tab as reported by the host.

    Refetched on every run and never mutated by the engine.  Accepts the
    host's camelCase field names as well as snake_case.
    """

    id: int = Field(description="Host tab id.")
    url: str = Field(default="", description="Full tab URL (may be empty).")
    title: str = Field(default="", description="Tab title.")
    fav_icon_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fav_icon_url", "favIconUrl"),
    )
    pinned: bool = False
    active: bool = False
    audible: bool = False
    last_accessed: float = Field(
        default=0.0,
        ge=0.0,
        validation_alias=AliasChoices("last_accessed", "lastAccessed"),
        description="Epoch milliseconds of the last activation.",
    )
    group_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("group_id", "groupId"),
        description="Host group the tab currently belongs to, if any.",
    )

    @field_validator("group_id")
    @classmethod
    def _none_sentinel(cls, value: int | None) -> int | None:
        if value is None or value == TAB_GROUP_ID_NONE:
            return None
        return value


class Category(BaseModel, frozen=True):
    """A user-visible grouping label with its matching rules."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=50)
    color: GroupColor = GroupColor.grey
    domains: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    is_default: bool = Field(
        default=False, validation_alias=AliasChoices("is_default", "isDefault")
    )
    is_system: bool = Field(
        default=False, validation_alias=AliasChoices("is_system", "isSystem")
    )
    order: int = Field(default=0, description="Persisted display order index.")

    @field_validator("domains")
    @classmethod
    def _normalize_domains(cls, value: list[str]) -> list[str]:
        return [normalize_hostname(d) for d in value if d.strip()]

    @field_validator("keywords")
    @classmethod
    def _normalize_keywords(cls, value: list[str]) -> list[str]:
        return [k.strip().lower() for k in value if k.strip()]


CategoryMapping = dict[str, str]


class Alternative(BaseModel, frozen=True):
    category: str
    confidence: float = Field(ge=0.0, le=1.0)


class ClassificationResult(BaseModel, frozen=True):
    """Outcome of classifying a single tab."""

    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    alternatives: list[Alternative] = Field(default_factory=list, max_length=3)
    source: Literal[
        "mapping", "learned", "context", "content", "category", "fallback", "none"
    ] = "none"


class TabContext(BaseModel, frozen=True):
    """Everything the classifier may look at for one tab."""

    tab: TabSnapshot
    time_of_day: TimeOfDay
    day_of_week: int = Field(ge=0, le=6, description="0=Monday, 6=Sunday.")
    session_tabs: list[TabSnapshot] = Field(default_factory=list)
    user_activity: Literal["active", "idle"] = "active"


class DuplicateGroup(BaseModel, frozen=True):
    """Tabs that point at the same page, plus which one to keep."""

    canonical_url: str
    tabs: list[TabSnapshot] = Field(min_length=2)
    kind: Literal["exact", "similar"]
    keep_tab_id: int

    @model_validator(mode="after")
    def _keep_is_member(self) -> DuplicateGroup:
        if self.keep_tab_id not in {t.id for t in self.tabs}:
            raise ValueError(
                f"keep_tab_id {self.keep_tab_id} is not a member of the group"
            )
        return self

    @property
    def close_tab_ids(self) -> list[int]:
        return [t.id for t in self.tabs if t.id != self.keep_tab_id]

    @property
    def recommendation(self) -> str:
        n = len(self.tabs) - 1
        kept = next(t for t in self.tabs if t.id == self.keep_tab_id)
        if kept.active:
            return f"Keep the active tab and close {n} duplicates"
        return f"Keep the most recent tab and close {n} duplicates"


class PlannedGroup(BaseModel, frozen=True):
    label: str = Field(min_length=1)
    color: GroupColor
    tab_ids: list[int] = Field(min_length=1)
    source: GroupSource


class GroupingPlan(BaseModel, frozen=True):
    """Ordered, conflict-free partition of tabs into labeled groups."""

    groups: list[PlannedGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_partition(self) -> GroupingPlan:
        seen: set[int] = set()
        for group in self.groups:
            for tab_id in group.tab_ids:
                if tab_id in seen:
                    raise ValueError(
                        f"Tab {tab_id} appears in more than one group "
                        f"(second occurrence in {group.label!r})"
                    )
                seen.add(tab_id)
        return self

    @property
    def tab_ids(self) -> list[int]:
        return [tab_id for g in self.groups for tab_id in g.tab_ids]


class ClosedTab(BaseModel, frozen=True):
    url: str
    title: str = ""


class UndoState(BaseModel, frozen=True):
    """Minimal record needed to reverse the most recent organize run."""

    timestamp: datetime
    created_group_ids: list[int] = Field(default_factory=list)
    grouped_tab_ids: list[int] = Field(default_factory=list)
    previously_grouped_tab_ids: list[int] = Field(default_factory=list)
    closed_tabs: list[ClosedTab] = Field(default_factory=list)


class ExecutionResult(BaseModel, frozen=True):
    success: bool
    groups_created: int = Field(default=0, ge=0)
    closed_duplicates: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    message: str = ""
    can_undo: bool = False


def is_uncategorized(category_id: str) -> bool:
    return category_id == UNCATEGORIZED
