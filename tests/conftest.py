"""Shared fixtures for the tabclf test suite."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from tabclf.core.types import GroupColor, TabSnapshot


class MemoryStore:
    """In-memory KeyValueStore; values go through JSON like the real one."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self.data:
            return default
        return json.loads(self.data[key])

    def set(self, key: str, value: Any) -> None:
        self.data[key] = json.dumps(value, default=str)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FakeTabHost:
    """Scriptable in-memory TabHost recording every call it receives.

    ``gate`` (when set) makes ``query_tabs`` wait until the event fires.
    ``fail_titles`` makes ``update_group`` raise for those group titles,
    ``fail_ungroup_batches`` makes the n-th ``ungroup_tabs`` call raise,
    ``fail_query`` makes every ``query_tabs`` call raise,
    ``fail_query_calls`` only the n-th ones (0-based).
    """

    def __init__(self, tabs: Sequence[TabSnapshot] = ()) -> None:
        self.tabs: dict[int, TabSnapshot] = {t.id: t for t in tabs}
        self.membership: dict[int, int] = {
            t.id: t.group_id for t in tabs if t.group_id is not None
        }
        self.styles: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.created: list[tuple[str, bool]] = []
        self.gate: asyncio.Event | None = None
        self.fail_titles: set[str] = set()
        self.fail_ungroup_batches: set[int] = set()
        self.fail_query = False
        self.fail_query_calls: set[int] = set()
        self._query_calls = 0
        self._ungroup_calls = 0
        self._next_group = 100
        self._next_tab = max(self.tabs, default=0) + 1

    async def query_tabs(self) -> list[TabSnapshot]:
        index = self._query_calls
        self._query_calls += 1
        self.calls.append(("query_tabs",))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_query or index in self.fail_query_calls:
            raise RuntimeError("host disconnected")
        return [
            t.model_copy(update={"group_id": self.membership.get(t.id)})
            for t in self.tabs.values()
        ]

    async def group_tabs(self, tab_ids: Sequence[int]) -> int:
        self.calls.append(("group_tabs", tuple(tab_ids)))
        group_id = self._next_group
        self._next_group += 1
        for tab_id in tab_ids:
            self.membership[tab_id] = group_id
        return group_id

    async def update_group(
        self, group_id: int, *, title: str, color: GroupColor, collapsed: bool = False
    ) -> None:
        self.calls.append(("update_group", group_id, title, color))
        if title in self.fail_titles:
            raise RuntimeError(f"cannot style {title}")
        self.styles[group_id] = {"title": title, "color": color, "collapsed": collapsed}

    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None:
        index = self._ungroup_calls
        self._ungroup_calls += 1
        self.calls.append(("ungroup_tabs", tuple(tab_ids)))
        if index in self.fail_ungroup_batches:
            raise RuntimeError("batch rejected")
        for tab_id in tab_ids:
            self.membership.pop(tab_id, None)

    async def remove_tabs(self, tab_ids: Sequence[int]) -> None:
        self.calls.append(("remove_tabs", tuple(tab_ids)))
        for tab_id in tab_ids:
            self.tabs.pop(tab_id, None)
            self.membership.pop(tab_id, None)

    async def create_tab(self, url: str, *, active: bool = False) -> int:
        self.calls.append(("create_tab", url, active))
        tab_id = self._next_tab
        self._next_tab += 1
        self.tabs[tab_id] = TabSnapshot(id=tab_id, url=url, active=active)
        self.created.append((url, active))
        return tab_id

    def groups(self) -> dict[int, list[int]]:
        """Current group id -> member tab ids."""
        out: dict[int, list[int]] = {}
        for tab_id, group_id in self.membership.items():
            out.setdefault(group_id, []).append(tab_id)
        return out


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def make_tab() -> Callable[..., TabSnapshot]:
    def _make(tab_id: int, url: str, title: str = "", **kwargs: Any) -> TabSnapshot:
        return TabSnapshot(id=tab_id, url=url, title=title, **kwargs)

    return _make


@pytest.fixture()
def make_host() -> Callable[[Sequence[TabSnapshot]], FakeTabHost]:
    return FakeTabHost


@pytest.fixture()
def morning() -> dt.datetime:
    """A Monday, 10:00 local time."""
    return dt.datetime(2025, 6, 16, 10, 0)
