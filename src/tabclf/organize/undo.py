"""Persistence of the single most-recent :class:`UndoState`."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from tabclf.core.defaults import KEY_UNDO_STATE
from tabclf.core.store import KeyValueStore
from tabclf.core.types import UndoState

logger = logging.getLogger(__name__)


class UndoStore:
    """Reads and replaces the undo record kept under ``undoState``."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> UndoState | None:
        raw = self._store.get(KEY_UNDO_STATE)
        if not raw:
            return None
        try:
            return UndoState.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding unreadable undo state", exc_info=True)
            return None

    def save(self, state: UndoState) -> None:
        self._store.set(KEY_UNDO_STATE, state.model_dump(mode="json"))

    def clear(self) -> None:
        self._store.delete(KEY_UNDO_STATE)
