"""Key-value persistence for engine state.

The host keeps categories, mappings, learned patterns and undo state in
a JSON key-value store.  :class:`KeyValueStore` is the boundary the
engine codes against; :class:`JsonFileStore` backs it with one JSON file
per key so the CLI (and tests) can run without a browser.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Final, Protocol, runtime_checkable

from tabclf.core.defaults import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)

_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.-]+$")


@runtime_checkable
class KeyValueStore(Protocol):
    """JSON-serializable key-value storage."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


class JsonFileStore:
    """File-backed :class:`KeyValueStore`: ``<data_dir>/<key>.json``.

    Writes go to a temporary file in the same directory first and are
    moved into place with :func:`os.replace`, so readers never observe a
    partially-written value.

    Args:
        data_dir: Directory holding the JSON files (created on first write).
    """

    def __init__(self, data_dir: Path | str = DEFAULT_DATA_DIR) -> None:
        self._dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid store key {key!r}")
        return self._dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text("utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt store entry at %s, using default", path)
            return default

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(value, indent=2, default=str) + "\n"
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".json.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise

    def delete(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(key).unlink()
