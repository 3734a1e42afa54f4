"""Host message entry points.

The host forwards runtime messages (``{"action": ..., ...}``) here and
sends back whatever :func:`dispatch` returns.  Every reply is a plain
JSON-ready dict; validation problems come back as
``{"success": False, "message": ...}`` instead of exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Final

from tabclf.core.types import ExecutionResult
from tabclf.core.validation import TabValidationError
from tabclf.organize.coordinator import OrganizeCoordinator

logger = logging.getLogger(__name__)

Handler = Callable[[OrganizeCoordinator, dict[str, Any]], Awaitable[dict[str, Any]]]


def _result(result: ExecutionResult) -> dict[str, Any]:
    return result.model_dump(mode="json")


async def _ping(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    return {"success": True, "message": "pong", "busy": coordinator.mutex.busy}


async def _organize(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    return _result(await coordinator.organize())


async def _organize_by_domain(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    return _result(await coordinator.organize_by_domain())


async def _undo(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    return _result(await coordinator.undo())


async def _learn(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    tab_id = message.get("tabId", message.get("tab_id"))
    category = message.get("category")
    if not isinstance(tab_id, int) or not isinstance(category, str):
        return {"success": False, "message": "learnReassignment needs an integer tabId and a category"}
    await coordinator.learn_reassignment(tab_id, category)
    return {"success": True, "message": "Learning updated"}


async def _insights(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    return {"success": True, **coordinator.insights().model_dump(mode="json")}


async def _duplicates(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    groups = await coordinator.find_duplicates()
    return {
        "success": True,
        "duplicates": [
            {
                "canonical_url": g.canonical_url,
                "kind": g.kind,
                "tab_ids": [t.id for t in g.tabs],
                "keep_tab_id": g.keep_tab_id,
                "close_tab_ids": g.close_tab_ids,
                "recommendation": g.recommendation,
            }
            for g in groups
        ],
    }


HANDLERS: Final[dict[str, Handler]] = {
    "ping": _ping,
    "smartOrganize": _organize,
    "aiOrganize": _organize,
    "organizeByDomain": _organize_by_domain,
    "undoOrganize": _undo,
    "learnReassignment": _learn,
    "getInsights": _insights,
    "findDuplicates": _duplicates,
}


async def dispatch(coordinator: OrganizeCoordinator, message: dict[str, Any]) -> dict[str, Any]:
    """Route one host *message* to the matching coordinator call."""
    action = message.get("action")
    handler = HANDLERS.get(action) if isinstance(action, str) else None
    if handler is None:
        return {"success": False, "message": f"Unknown action: {action!r}"}
    try:
        return await handler(coordinator, message)
    except TabValidationError as exc:
        logger.info("Rejected %s: %s", action, exc)
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        logger.exception("Handler for %s failed", action)
        return {"success": False, "message": f"{action} failed: {exc}"}
