"""The host tab-management API the coordinator drives.

Any object with these coroutine methods works: the browser bridge in
production, an in-memory fake in tests.  All calls act on the current
window only.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from tabclf.core.types import GroupColor, TabSnapshot


@runtime_checkable
class TabHost(Protocol):
    async def query_tabs(self) -> list[TabSnapshot]:
        """Every tab open in the current window, in window order."""
        ...

    async def group_tabs(self, tab_ids: Sequence[int]) -> int:
        """Put *tab_ids* into a new group and return the group id."""
        ...

    async def update_group(
        self,
        group_id: int,
        *,
        title: str,
        color: GroupColor,
        collapsed: bool = False,
    ) -> None: ...

    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None: ...

    async def remove_tabs(self, tab_ids: Sequence[int]) -> None: ...

    async def create_tab(self, url: str, *, active: bool = False) -> int:
        """Open *url* in a new tab and return its id."""
        ...
