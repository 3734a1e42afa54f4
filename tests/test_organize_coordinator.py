"""Tests for the execution coordinator against an in-memory tab host.

Coroutines are driven with ``asyncio.run``; the fake host records every
call so tests can assert what the coordinator asked the browser to do.
"""

from __future__ import annotations

import asyncio

import pytest

from tabclf.core.config import SmartOrganizeConfig
from tabclf.classify.pipeline import ClassificationPipeline, build_context
from tabclf.core.defaults import (
    BUSY_MESSAGE,
    KEY_CATEGORY_MAPPING,
    KEY_UNDO_STATE,
    KEY_USER_PATTERNS,
    NO_UNDO_MESSAGE,
)
from tabclf.core.types import GroupColor
from tabclf.core.validation import UnknownTabError
from tabclf.organize.coordinator import (
    OrganizeBusyError,
    OrganizeCoordinator,
    OrganizeMutex,
    RunState,
    plan_organize,
)
from tabclf.organize.host import TabHost


def _no_dedupe() -> SmartOrganizeConfig:
    return SmartOrganizeConfig(close_duplicates=False)


class TestOrganizeMutex:
    def test_idle_running_idle(self) -> None:
        mutex = OrganizeMutex()
        with mutex.hold():
            assert mutex.state is RunState.RUNNING
            assert mutex.busy
        assert mutex.state is RunState.IDLE

    def test_second_hold_is_busy(self) -> None:
        mutex = OrganizeMutex()
        with mutex.hold():
            with pytest.raises(OrganizeBusyError, match=BUSY_MESSAGE):
                with mutex.hold():
                    pass
        assert mutex.state is RunState.IDLE

    def test_exception_marks_failed_and_releases(self) -> None:
        mutex = OrganizeMutex()
        with pytest.raises(ValueError):
            with mutex.hold():
                raise ValueError("boom")
        assert mutex.state is RunState.FAILED
        assert not mutex.busy
        with mutex.hold():
            pass
        assert mutex.state is RunState.IDLE


def test_fake_host_satisfies_protocol(make_host) -> None:
    assert isinstance(make_host([]), TabHost)


class TestOrganize:
    def test_duplicates_closed_then_grouped(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://a.com/p"),
            make_tab(2, "https://a.com/p"),
            make_tab(3, "https://b.com"),
        ])
        result = asyncio.run(OrganizeCoordinator(host, store).organize())

        assert result.success
        assert result.closed_duplicates == 1
        assert result.groups_created == 1
        assert result.can_undo
        assert result.message == "Organized 2 tabs into 1 groups and closed 1 duplicates"
        assert ("remove_tabs", (2,)) in host.calls
        assert list(host.groups().values()) == [[1, 3]]
        style = next(iter(host.styles.values()))
        assert style == {"title": "Uncategorized", "color": GroupColor.grey, "collapsed": False}

    def test_undo_restores_and_second_undo_is_noop(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://a.com/p", "Page"),
            make_tab(2, "https://a.com/p", "Page"),
            make_tab(3, "https://b.com"),
        ])
        coordinator = OrganizeCoordinator(host, store)

        async def scenario():
            await coordinator.organize()
            return await coordinator.undo(), await coordinator.undo()

        first, second = asyncio.run(scenario())
        assert first.success
        assert first.message == "Ungrouped 2 tabs and reopened 1 closed tabs"
        assert host.created == [("https://a.com/p", False)]
        assert host.groups() == {}
        assert store.get(KEY_UNDO_STATE) is None
        assert not second.success
        assert second.message == NO_UNDO_MESSAGE

    def test_undo_state_records_previous_groups(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://a.test", group_id=7),
            make_tab(2, "https://b.test"),
        ])
        asyncio.run(OrganizeCoordinator(host, store, config=_no_dedupe()).organize())
        state = store.get(KEY_UNDO_STATE)
        assert state["previously_grouped_tab_ids"] == [1]
        assert state["grouped_tab_ids"] == [1, 2]
        assert state["closed_tabs"] == []

    def test_partial_failure_keeps_going(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://github.com/a/b"),
            make_tab(2, "https://github.com/c/d"),
            make_tab(3, "https://www.youtube.com/watch?v=1"),
            make_tab(4, "https://www.youtube.com/watch?v=2"),
        ])
        host.fail_titles = {"Work"}
        result = asyncio.run(OrganizeCoordinator(host, store, config=_no_dedupe()).organize())

        assert result.success
        assert result.groups_created == 1
        assert len(result.errors) == 1
        assert "Work" in result.errors[0]
        assert result.message.endswith("(1 errors)")
        assert [s["title"] for s in host.styles.values()] == ["Entertainment"]

    def test_critical_failure_reports_and_releases(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(1, "https://a.test")])
        host.fail_query = True
        coordinator = OrganizeCoordinator(host, store)

        failed = asyncio.run(coordinator.organize())
        assert not failed.success
        assert failed.message == "Organization failed: host disconnected"
        assert coordinator.mutex.state is RunState.FAILED

        host.fail_query = False
        recovered = asyncio.run(coordinator.organize())
        assert recovered.success
        assert coordinator.mutex.state is RunState.IDLE

    def test_closed_duplicates_survive_later_failure(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://a.com/p", "Page"),
            make_tab(2, "https://a.com/p", "Page"),
            make_tab(3, "https://b.com"),
        ])
        host.fail_query_calls = {1}
        coordinator = OrganizeCoordinator(host, store)

        failed = asyncio.run(coordinator.organize())
        assert not failed.success
        assert failed.message == "Organization failed: host disconnected"
        assert sorted(host.tabs) == [1, 3]
        state = store.get(KEY_UNDO_STATE)
        assert [t["url"] for t in state["closed_tabs"]] == ["https://a.com/p"]
        assert state["grouped_tab_ids"] == []

        undone = asyncio.run(coordinator.undo())
        assert undone.success
        assert undone.message == "Ungrouped 0 tabs and reopened 1 closed tabs"
        assert host.created == [("https://a.com/p", False)]
        assert store.get(KEY_UNDO_STATE) is None

    def test_concurrent_request_gets_busy(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(1, "https://a.test"), make_tab(2, "https://b.test")])
        coordinator = OrganizeCoordinator(host, store)

        async def scenario():
            host.gate = asyncio.Event()
            first = asyncio.create_task(coordinator.organize())
            await asyncio.sleep(0)
            busy = await coordinator.organize()
            calls_while_blocked = list(host.calls)
            host.gate.set()
            return busy, calls_while_blocked, await first

        busy, calls_while_blocked, done = asyncio.run(scenario())
        assert not busy.success
        assert busy.message == BUSY_MESSAGE
        assert calls_while_blocked == [("query_tabs",)]
        assert done.success

    def test_ungroup_in_batches_of_ten(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(i, f"https://site{i}.test/") for i in range(1, 26)])
        host.fail_ungroup_batches = {1}
        result = asyncio.run(OrganizeCoordinator(host, store, config=_no_dedupe()).organize())

        ungroup_sizes = [len(call[1]) for call in host.calls if call[0] == "ungroup_tabs"]
        assert ungroup_sizes == [10, 10, 5]
        assert result.success
        assert result.groups_created == 1

    def test_rerun_produces_same_grouping(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://github.com/a/b"),
            make_tab(2, "https://github.com/c/d"),
            make_tab(3, "https://x.test"),
            make_tab(4, "https://y.test"),
        ])
        coordinator = OrganizeCoordinator(host, store, config=_no_dedupe())
        asyncio.run(coordinator.organize())
        first = sorted(host.groups().values())
        asyncio.run(coordinator.organize())
        assert sorted(host.groups().values()) == first

    def test_config_read_from_store(self, store, make_tab, make_host) -> None:
        store.set("smartOrganizeConfig", {"closeDuplicates": False})
        host = make_host([make_tab(1, "https://a.com/p"), make_tab(2, "https://a.com/p")])
        result = asyncio.run(OrganizeCoordinator(host, store).organize())
        assert result.closed_duplicates == 0
        assert not any(call[0] == "remove_tabs" for call in host.calls)


class TestOrganizeByDomain:
    def test_groups_shared_domains(self, store, make_tab, make_host) -> None:
        host = make_host([
            make_tab(1, "https://a.com/1"),
            make_tab(2, "https://b.com/1"),
            make_tab(3, "https://a.com/2"),
        ])
        result = asyncio.run(OrganizeCoordinator(host, store).organize_by_domain())
        assert result.success
        assert result.groups_created == 1
        assert result.message == "Organized 3 tabs into 1 groups"
        assert list(host.groups().values()) == [[1, 3]]

    def test_nothing_to_group(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(1, "https://a.com"), make_tab(2, "https://b.com")])
        result = asyncio.run(OrganizeCoordinator(host, store).organize_by_domain())
        assert result.groups_created == 0
        assert result.message == "No groups created (need at least 2 tabs from the same domain)"


class TestLearningEntryPoints:
    def test_learn_reassignment_records_pattern(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(1, "https://news.example/a"), make_tab(2, "https://other.example")])
        asyncio.run(OrganizeCoordinator(host, store).learn_reassignment(1, "news"))
        stored = store.get(KEY_USER_PATTERNS)["news.example"]
        assert stored["categories"] == {"news": 1}
        assert sum(stored["timePatterns"].values()) == 1
        assert stored["contextPatterns"] == {"news": ["other.example"]}

    def test_unknown_tab(self, store, make_host) -> None:
        with pytest.raises(UnknownTabError):
            asyncio.run(OrganizeCoordinator(make_host([]), store).learn_reassignment(9, "news"))

    def test_insights_after_learning(self, store, make_tab, make_host) -> None:
        coordinator = OrganizeCoordinator(make_host([make_tab(1, "https://news.example/a")]), store)
        asyncio.run(coordinator.learn_reassignment(1, "news"))
        assert coordinator.insights().category_counts == {"news": 1}

    def test_find_duplicates(self, store, make_tab, make_host) -> None:
        host = make_host([make_tab(1, "https://a.com/p"), make_tab(2, "https://a.com/p", pinned=True)])
        assert asyncio.run(OrganizeCoordinator(host, store).find_duplicates()) == []


class TestPlanOrganize:
    def test_run_config_does_not_leak_into_pipeline(self, store, make_tab, morning) -> None:
        store.set(KEY_CATEGORY_MAPPING, {"example.com": "news"})
        tabs = [
            make_tab(1, "https://example.com/a", "Alpha"),
            make_tab(2, "https://example.com/b", "Zulu"),
        ]
        pipeline = ClassificationPipeline(store)

        ignore = SmartOrganizeConfig(respect_user_categories=False, enable_smart_groups=False)
        ignoring = plan_organize(tabs, pipeline, ignore, morning)
        assert "News" not in [g.label for g in ignoring.groups]
        assert pipeline.respect_user_categories is True
        assert pipeline.classify(build_context(tabs[0], tabs, morning)).source == "mapping"

        respecting = plan_organize(
            tabs, pipeline, SmartOrganizeConfig(enable_smart_groups=False), morning
        )
        assert [(g.label, g.tab_ids) for g in respecting.groups] == [("News", [1, 2])]
