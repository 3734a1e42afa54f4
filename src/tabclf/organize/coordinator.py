"""Mutex-guarded execution of grouping plans against the host tab API.

One :class:`OrganizeCoordinator` serves every entry point of a host
process.  Runs never overlap: a second request while one is in progress
gets a busy result straight away and touches nothing.  Failures of a
single host call are collected into ``ExecutionResult.errors`` and the
run carries on; anything unexpected ends the run with ``success=False``.
Either way the mutex is released.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import StrEnum

from tabclf.classify.pipeline import ClassificationPipeline, build_context
from tabclf.core.config import SmartOrganizeConfig, load_organize_config
from tabclf.core.defaults import BUSY_MESSAGE, NO_UNDO_MESSAGE, UNGROUP_BATCH_SIZE
from tabclf.core.store import KeyValueStore
from tabclf.core.types import (
    ClosedTab,
    DuplicateGroup,
    ExecutionResult,
    GroupingPlan,
    TabSnapshot,
    UndoState,
)
from tabclf.core.validation import UnknownTabError
from tabclf.features.domain import domain_of
from tabclf.organize.clusters import detect_clusters
from tabclf.organize.duplicates import find_duplicates
from tabclf.organize.host import TabHost
from tabclf.organize.planner import build_plan, eligible_tabs, plan_by_domain
from tabclf.organize.undo import UndoStore
from tabclf.report.insights import PatternInsights

logger = logging.getLogger(__name__)


class RunState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class OrganizeBusyError(RuntimeError):
    """Raised by :meth:`OrganizeMutex.hold` while another run holds it."""

    def __init__(self) -> None:
        super().__init__(BUSY_MESSAGE)


class OrganizeMutex:
    """Idle -> Running -> (Idle | Failed) run guard.

    ``Failed`` records that the last run raised; it does not block the
    next one.
    """

    def __init__(self) -> None:
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is RunState.RUNNING

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the mutex for the body of a ``with`` block.

        Raises:
            OrganizeBusyError: If a run is already in progress.
        """
        if self._state is RunState.RUNNING:
            raise OrganizeBusyError()
        self._state = RunState.RUNNING
        try:
            yield
        except BaseException:
            self._state = RunState.FAILED
            raise
        self._state = RunState.IDLE


def plan_organize(
    tabs: Sequence[TabSnapshot],
    pipeline: ClassificationPipeline,
    config: SmartOrganizeConfig,
    now: datetime | None = None,
) -> GroupingPlan:
    """Classify, cluster and plan *tabs* without touching the host.

    Loads the pipeline's pattern store once for the whole run.  The
    config's ``respect_user_categories`` applies to this run only.
    """
    pipeline.load()
    tabs = eligible_tabs(tabs)
    classifications = pipeline.classify_tabs(
        tabs, now, respect_user_categories=config.respect_user_categories
    )
    clusters = detect_clusters(tabs) if config.enable_smart_groups else []
    return build_plan(tabs, classifications, pipeline.categories, clusters, config)


def _batches(ids: Sequence[int], size: int = UNGROUP_BATCH_SIZE) -> Iterator[list[int]]:
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


class OrganizeCoordinator:
    """Runs organize / undo against *host* and keeps the undo record.

    Args:
        host: Host tab API.
        store: Key-value store with categories, patterns, config and undo state.
        pipeline: Classifier to use; one reading *store* is built when ``None``.
        config: Fixed organize settings; read from *store* on every run
            when ``None``.
    """

    def __init__(
        self,
        host: TabHost,
        store: KeyValueStore,
        *,
        pipeline: ClassificationPipeline | None = None,
        config: SmartOrganizeConfig | None = None,
    ) -> None:
        self._host = host
        self._store = store
        self._pipeline = pipeline or ClassificationPipeline(store)
        self._config = config
        self._undo = UndoStore(store)
        self.mutex = OrganizeMutex()

    @property
    def pipeline(self) -> ClassificationPipeline:
        return self._pipeline

    @property
    def config(self) -> SmartOrganizeConfig:
        return self._config or load_organize_config(self._store)

    # -- entry points ------------------------------------------------------

    async def organize(self) -> ExecutionResult:
        """Close duplicates, regroup every tab, and record how to undo it."""
        try:
            with self.mutex.hold():
                return await self._organize(self.config)
        except OrganizeBusyError:
            logger.info("Organize requested while another run is in progress")
            return ExecutionResult(success=False, message=BUSY_MESSAGE)
        except Exception as exc:
            logger.exception("Organize run failed")
            return ExecutionResult(success=False, message=f"Organization failed: {exc}")

    async def organize_by_domain(self) -> ExecutionResult:
        """Regroup tabs by hostname only (no classifier, no detectors)."""
        try:
            with self.mutex.hold():
                return await self._organize_by_domain(self.config)
        except OrganizeBusyError:
            logger.info("Domain organize requested while another run is in progress")
            return ExecutionResult(success=False, message=BUSY_MESSAGE)
        except Exception as exc:
            logger.exception("Domain organize run failed")
            return ExecutionResult(success=False, message=f"Organization failed: {exc}")

    async def undo(self) -> ExecutionResult:
        """Reverse the most recent organize run, then forget it."""
        try:
            with self.mutex.hold():
                return await self._undo_last()
        except OrganizeBusyError:
            logger.info("Undo requested while another run is in progress")
            return ExecutionResult(success=False, message=BUSY_MESSAGE)
        except Exception as exc:
            logger.exception("Undo failed")
            return ExecutionResult(success=False, message=f"Undo failed: {exc}")

    async def find_duplicates(self) -> list[DuplicateGroup]:
        return find_duplicates(eligible_tabs(await self._host.query_tabs()))

    async def learn_reassignment(self, tab_id: int, category_id: str) -> None:
        """Teach the classifier that the user moved *tab_id* to *category_id*.

        Raises:
            UnknownTabError: If no open tab has *tab_id*.
            InvalidDomainError: If the tab's URL has no usable hostname.
            UnknownCategoryError: If *category_id* is not a known category.
        """
        tabs = await self._host.query_tabs()
        tab = next((t for t in tabs if t.id == tab_id), None)
        if tab is None:
            raise UnknownTabError(tab_id)
        self._pipeline.load()
        self._pipeline.learn(
            domain_of(tab.url) or tab.url,
            category_id,
            build_context(tab, tabs),
        )

    def insights(self) -> PatternInsights:
        return self._pipeline.load().insights()

    # -- run bodies --------------------------------------------------------

    async def _organize(self, config: SmartOrganizeConfig) -> ExecutionResult:
        errors: list[str] = []
        closed: list[ClosedTab] = []
        if config.close_duplicates:
            closed = await self._close_duplicates(await self._host.query_tabs(), errors)
        if closed:
            # Closed tabs stay reopenable even if the rest of the run raises.
            self._undo.save(UndoState(timestamp=datetime.now(timezone.utc), closed_tabs=closed))

        tabs = await self._host.query_tabs()
        previously_grouped = [t.id for t in tabs if t.group_id is not None]
        await self._ungroup([t.id for t in tabs])

        plan = plan_organize(tabs, self._pipeline, config)
        created, grouped, styled = await self._apply(plan, errors)

        self._undo.save(
            UndoState(
                timestamp=datetime.now(timezone.utc),
                created_group_ids=created,
                grouped_tab_ids=grouped,
                previously_grouped_tab_ids=previously_grouped,
                closed_tabs=closed,
            )
        )
        message = f"Organized {len(grouped)} tabs into {styled} groups"
        if closed:
            message += f" and closed {len(closed)} duplicates"
        if errors:
            message += f" ({len(errors)} errors)"
        logger.info(message)
        return ExecutionResult(
            success=True,
            groups_created=styled,
            closed_duplicates=len(closed),
            errors=errors,
            message=message,
            can_undo=True,
        )

    async def _organize_by_domain(self, config: SmartOrganizeConfig) -> ExecutionResult:
        errors: list[str] = []
        tabs = await self._host.query_tabs()
        previously_grouped = [t.id for t in tabs if t.group_id is not None]
        await self._ungroup([t.id for t in tabs])

        created, grouped, styled = await self._apply(plan_by_domain(tabs, config), errors)
        self._undo.save(
            UndoState(
                timestamp=datetime.now(timezone.utc),
                created_group_ids=created,
                grouped_tab_ids=grouped,
                previously_grouped_tab_ids=previously_grouped,
            )
        )
        if styled:
            message = f"Organized {len(tabs)} tabs into {styled} groups"
        else:
            message = "No groups created (need at least 2 tabs from the same domain)"
        return ExecutionResult(
            success=True,
            groups_created=styled,
            errors=errors,
            message=message,
            can_undo=True,
        )

    async def _undo_last(self) -> ExecutionResult:
        state = self._undo.load()
        if state is None:
            return ExecutionResult(success=False, message=NO_UNDO_MESSAGE)

        errors: list[str] = []
        await self._ungroup(state.grouped_tab_ids)
        restored = 0
        for tab in state.closed_tabs:
            try:
                await self._host.create_tab(tab.url, active=False)
            except Exception as exc:
                logger.warning("Could not reopen closed tab url=%s: %s", tab.url, exc)
                errors.append(f"Failed to reopen {tab.url}: {exc}")
                continue
            restored += 1
        self._undo.clear()

        message = f"Ungrouped {len(state.grouped_tab_ids)} tabs"
        if restored:
            message += f" and reopened {restored} closed tabs"
        return ExecutionResult(success=True, errors=errors, message=message)

    # -- host helpers ------------------------------------------------------

    async def _close_duplicates(
        self, tabs: Sequence[TabSnapshot], errors: list[str]
    ) -> list[ClosedTab]:
        closed: list[ClosedTab] = []
        for group in find_duplicates(eligible_tabs(tabs)):
            to_close = group.close_tab_ids
            try:
                await self._host.remove_tabs(to_close)
            except Exception as exc:
                logger.warning("Failed to close %d duplicates: %s", len(to_close), exc)
                errors.append(f"Failed to close duplicates of {group.canonical_url}: {exc}")
                continue
            closed.extend(
                ClosedTab(url=t.url, title=t.title) for t in group.tabs if t.id in to_close
            )
        return closed

    async def _ungroup(self, tab_ids: Sequence[int]) -> None:
        for batch in _batches(tab_ids):
            try:
                await self._host.ungroup_tabs(batch)
            except Exception as exc:
                logger.warning("Skipping ungroup batch of %d tabs: %s", len(batch), exc)

    async def _apply(
        self, plan: GroupingPlan, errors: list[str]
    ) -> tuple[list[int], list[int], int]:
        """Create and style every planned group.

        Returns:
            ``(created group ids, grouped tab ids, fully styled group count)``.
        """
        created: list[int] = []
        grouped: list[int] = []
        styled = 0
        for group in plan.groups:
            try:
                group_id = await self._host.group_tabs(group.tab_ids)
                created.append(group_id)
                grouped.extend(group.tab_ids)
                await self._host.update_group(
                    group_id, title=group.label, color=group.color, collapsed=False
                )
            except Exception as exc:
                logger.warning("Failed to create %s group: %s", group.source, exc)
                errors.append(f"Failed to create group {group.label!r}: {exc}")
                continue
            styled += 1
        return created, grouped, styled
